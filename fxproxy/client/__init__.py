"""Client side of the rates pipeline: API client, persisted cache and controller."""

from .api import RatesApiClient
from .cache import ClientRatesCache
from .controller import Notification, RatesController, make_rates_controller
from .history import ConversionHistory, PreferencesStore
from .storage import JsonFileStorage, MemoryStorage

__all__ = [
    "ClientRatesCache",
    "ConversionHistory",
    "JsonFileStorage",
    "MemoryStorage",
    "Notification",
    "PreferencesStore",
    "RatesApiClient",
    "RatesController",
    "make_rates_controller",
]
