"""Pydantic domain models for the rates proxy and client cache."""

from .constants import (
    BASE_CURRENCY,
    FOREIGN_CURRENCIES,
    SUPPORTED_CURRENCIES,
)  # re-export
from .history import MAX_HISTORY_ITEMS, ConversionHistoryItem, UserPreferences
from .rates import (
    CacheScope,
    ErrorResponse,
    HealthResponse,
    PersistedRatesRecord,
    RateSnapshot,
    RatesMeta,
    RatesResponse,
    has_valid_rates,
)

__all__ = [
    "BASE_CURRENCY",
    "FOREIGN_CURRENCIES",
    "SUPPORTED_CURRENCIES",
    "MAX_HISTORY_ITEMS",
    "ConversionHistoryItem",
    "UserPreferences",
    "CacheScope",
    "ErrorResponse",
    "HealthResponse",
    "PersistedRatesRecord",
    "RateSnapshot",
    "RatesMeta",
    "RatesResponse",
    "has_valid_rates",
]
