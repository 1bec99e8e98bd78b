from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import date as date_type
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .constants import BASE_CURRENCY, SUPPORTED_CURRENCIES

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

LATEST_CLIENT_KEY = "latest"


def is_valid_rate(value: Any) -> bool:
    # bool is an int subclass; a persisted `true` is not a rate
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value > 0


def has_valid_rates(value: Any) -> bool:
    """True when every supported currency maps to a positive finite number."""
    if not isinstance(value, dict):
        return False
    return all(is_valid_rate(value.get(code)) for code in SUPPORTED_CURRENCIES)


class RateSnapshot(BaseModel):
    """One complete set of RUB-per-unit rates as published for `date`."""

    base: Literal["RUB"] = BASE_CURRENCY
    date: str = Field(..., pattern=ISO_DATE_RE.pattern)
    rates: Dict[str, float]

    @field_validator("rates", mode="before")
    @classmethod
    def numeric_rates(cls, value: Any) -> Any:
        # checked before coercion so "91.2" or true never pass as a rate
        if isinstance(value, dict) and not has_valid_rates(value):
            raise ValueError("rates must be numbers for every supported currency")
        return value

    @model_validator(mode="after")
    def complete_rates(self) -> "RateSnapshot":
        if not has_valid_rates(self.rates):
            raise ValueError("rates must contain a positive finite value for every supported currency")
        if self.rates[BASE_CURRENCY] != 1:
            raise ValueError("base currency rate must be exactly 1")
        return self


class RatesResponse(RateSnapshot):
    timestamp: int = Field(..., description="Retrieval instant, epoch milliseconds")
    stale: Optional[Literal[True]] = None
    error: Optional[str] = None

    @classmethod
    def stamped(
        cls,
        snapshot: RateSnapshot,
        timestamp_ms: int,
        *,
        stale_reason: Optional[str] = None,
    ) -> "RatesResponse":
        return cls(
            base=snapshot.base,
            date=snapshot.date,
            rates=dict(snapshot.rates),
            timestamp=timestamp_ms,
            stale=True if stale_reason is not None else None,
            error=stale_reason,
        )

    def snapshot(self) -> RateSnapshot:
        return RateSnapshot(base=self.base, date=self.date, rates=dict(self.rates))


class ErrorResponse(BaseModel):
    message: str
    details: Optional[str] = None


class HealthResponse(BaseModel):
    status: Literal["ok"] = "ok"
    timestamp: int


class RatesMeta(BaseModel):
    """Retrieval metadata stored next to a persisted snapshot."""

    model_config = ConfigDict(populate_by_name=True)

    timestamp: float
    date: str = Field(..., min_length=1)
    last_updated_local_iso: str = Field(..., alias="lastUpdatedLocalISO", min_length=1)

    @field_validator("timestamp", mode="before")
    @classmethod
    def finite_number(cls, v: Any) -> float:
        if isinstance(v, bool) or not isinstance(v, (int, float)) or not math.isfinite(v):
            raise ValueError("timestamp must be a finite number")
        return float(v)

    def to_storage(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class PersistedRatesRecord(BaseModel):
    rates: Dict[str, float]
    meta: RatesMeta

    @property
    def snapshot(self) -> RateSnapshot:
        return RateSnapshot(date=self.meta.date, rates=dict(self.rates))


@dataclass(frozen=True)
class CacheScope:
    """Cache key dimension: latest rates or rates pinned to a past date."""

    requested_date: Optional[date_type] = None

    @classmethod
    def latest(cls) -> "CacheScope":
        return cls()

    @property
    def is_latest(self) -> bool:
        return self.requested_date is None

    def server_key(self) -> str:
        if self.requested_date is None:
            return "rates:latest"
        return f"rates:{self.requested_date.isoformat()}"

    def client_key(self) -> str:
        if self.requested_date is None:
            return LATEST_CLIENT_KEY
        return f"date:{self.requested_date.isoformat()}"
