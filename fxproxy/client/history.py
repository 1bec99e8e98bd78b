from __future__ import annotations

"""Persisted conversion history and preferred currency pair.

Stored next to the rates cache in the same key/value storage:
    conversionHistory                   -> [{"id", "from", "to", "amount", "result",
                                             "timestamp", "rateFrom", "rateTo"}, ...]
    currency_converter_user_settings_v1 -> {"preferredFrom": "USD", "preferredTo": "RUB", ...}

History is newest first and capped at MAX_HISTORY_ITEMS. Corrupt entries are
dropped on read, a corrupt list reads as empty.
"""
import logging
import time
from typing import Any, Callable, List

from pydantic import ValidationError

from fxproxy.models.history import MAX_HISTORY_ITEMS, ConversionHistoryItem, UserPreferences
from fxproxy.services.rates.conversion import ConversionResult
from .storage import KeyValueStorage

logger = logging.getLogger("fxproxy.client.history")

HISTORY_STORAGE_KEY = "conversionHistory"
SETTINGS_STORAGE_KEY = "currency_converter_user_settings_v1"


def decode_history(raw: Any) -> List[ConversionHistoryItem]:
    if not isinstance(raw, list):
        return []
    items: List[ConversionHistoryItem] = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        try:
            items.append(ConversionHistoryItem.model_validate(entry))
        except ValidationError:
            continue
    if len(items) != len(raw):
        logger.debug("dropped %d invalid history entries", len(raw) - len(items))
    return items[:MAX_HISTORY_ITEMS]


class ConversionHistory:
    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        max_items: int = MAX_HISTORY_ITEMS,
        clock: Callable[[], float] = time.time,
    ):
        self._storage = storage
        self._max_items = max_items
        self._clock = clock

    def items(self) -> List[ConversionHistoryItem]:
        return decode_history(self._storage.read(HISTORY_STORAGE_KEY))[: self._max_items]

    def add(self, conversion: ConversionResult) -> ConversionHistoryItem:
        item = ConversionHistoryItem(
            from_currency=conversion.from_currency,
            to_currency=conversion.to_currency,
            amount=conversion.amount,
            result=conversion.result,
            timestamp=int(self._clock() * 1000),
            rate_from=conversion.rate_from,
            rate_to=conversion.rate_to,
        )
        entries = [item, *self.items()][: self._max_items]
        self._storage.write(HISTORY_STORAGE_KEY, [e.to_storage() for e in entries])
        return item

    def clear(self) -> None:
        self._storage.write(HISTORY_STORAGE_KEY, [])


class PreferencesStore:
    def __init__(self, storage: KeyValueStorage):
        self._storage = storage

    def _raw(self) -> dict:
        raw = self._storage.read(SETTINGS_STORAGE_KEY)
        return raw if isinstance(raw, dict) else {}

    def read(self) -> UserPreferences:
        return UserPreferences.model_validate(self._raw())

    def set_preferred_pair(self, from_currency: str, to_currency: str) -> UserPreferences:
        prefs = UserPreferences(
            preferred_from=from_currency.upper(), preferred_to=to_currency.upper()
        )
        # keep keys this module does not own (e.g. the UI theme)
        merged = {**self._raw(), **prefs.model_dump(by_alias=True)}
        self._storage.write(SETTINGS_STORAGE_KEY, merged)
        return prefs
