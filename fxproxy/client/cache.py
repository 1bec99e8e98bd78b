from __future__ import annotations

"""Persisted client rates cache.

Two storage keys hold parallel buckets keyed by scope ("latest", "date:YYYY-MM-DD"):
    currencyRates -> {scope: {"RUB": 1, "USD": 91.2, ...}}
    ratesMeta     -> {scope: {"timestamp": 1709630000000, "date": "2024-03-05",
                              "lastUpdatedLocalISO": "2024-03-05T12:00:00+03:00"}}

Older builds stored a single bare rates object / meta object under the same keys;
those decode as the "latest" scope. Anything else decodes as empty. Reads never
raise: corrupt data is a cache miss.
"""
import logging
import time
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from pydantic import ValidationError

from fxproxy.models.constants import RATES_TTL_SECONDS, SUPPORTED_CURRENCIES
from fxproxy.models.rates import (
    LATEST_CLIENT_KEY,
    CacheScope,
    PersistedRatesRecord,
    RatesMeta,
    has_valid_rates,
)
from .storage import KeyValueStorage

logger = logging.getLogger("fxproxy.client.cache")

RATES_STORAGE_KEY = "currencyRates"
META_STORAGE_KEY = "ratesMeta"


class BucketFormat(str, Enum):
    SCOPED = "scoped"
    LEGACY = "legacy"
    EMPTY = "empty"


def is_valid_meta(value: Any) -> bool:
    return _parse_meta(value) is not None


def _parse_meta(value: Any) -> Optional[RatesMeta]:
    if not isinstance(value, dict):
        return None
    try:
        return RatesMeta.model_validate(value)
    except ValidationError:
        return None


def decode_bucket(
    raw: Any, is_valid: Callable[[Any], bool]
) -> Tuple[BucketFormat, Dict[str, Any]]:
    """Decode a stored bucket, trying the scope mapping first, then the bare legacy object."""
    if isinstance(raw, dict) and raw and all(isinstance(v, dict) for v in raw.values()):
        entries = {k: v for k, v in raw.items() if is_valid(v)}
        dropped = len(raw) - len(entries)
        if dropped:
            logger.debug("dropped %d invalid cache entries", dropped)
        return BucketFormat.SCOPED, entries
    if is_valid(raw):
        return BucketFormat.LEGACY, {LATEST_CLIENT_KEY: raw}
    return BucketFormat.EMPTY, {}


class ClientRatesCache:
    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        ttl_seconds: float = RATES_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self._storage = storage
        self._ttl_ms = ttl_seconds * 1000
        self._clock = clock

    def _buckets(self) -> Tuple[Dict[str, Any], Dict[str, Any], bool]:
        """Decoded rates and meta buckets, plus whether either was in the legacy layout."""
        rates_fmt, rates = decode_bucket(self._storage.read(RATES_STORAGE_KEY), has_valid_rates)
        meta_fmt, meta = decode_bucket(self._storage.read(META_STORAGE_KEY), is_valid_meta)
        return rates, meta, BucketFormat.LEGACY in (rates_fmt, meta_fmt)

    def read(self, scope: CacheScope) -> Optional[PersistedRatesRecord]:
        key = scope.client_key()
        rates_bucket, meta_bucket, _ = self._buckets()
        rates = rates_bucket.get(key)
        meta = _parse_meta(meta_bucket.get(key))
        if rates is None or meta is None:
            return None
        # only the supported codes were validated; ignore anything else stored
        return PersistedRatesRecord(
            rates={code: float(rates[code]) for code in SUPPORTED_CURRENCIES}, meta=meta
        )

    def write(self, scope: CacheScope, record: PersistedRatesRecord) -> None:
        if not has_valid_rates(record.rates):
            raise ValueError("refusing to persist incomplete rates")
        key = scope.client_key()
        rates_bucket, meta_bucket, legacy = self._buckets()
        if legacy:
            logger.info("upgrading legacy rates cache layout to scoped buckets")
        rates_bucket[key] = dict(record.rates)
        meta_bucket[key] = record.meta.to_storage()
        self._storage.write(RATES_STORAGE_KEY, rates_bucket)
        self._storage.write(META_STORAGE_KEY, meta_bucket)

    def is_fresh(self, record: PersistedRatesRecord) -> bool:
        return self._clock() * 1000 - record.meta.timestamp < self._ttl_ms
