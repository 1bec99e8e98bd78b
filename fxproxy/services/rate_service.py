"""Rates request orchestration: date validation, cache, feed and stale fallback.

Per request:
- Validate the optional `date` (format, real calendar day, not in the future).
- Serve a fresh cache hit without touching the feed.
- Otherwise fetch; on success cache for the TTL.
- On feed failure serve the last cached snapshot flagged stale, or report the
  upstream as unavailable when nothing was ever cached for that scope.

Every returned response carries the retrieval instant in `timestamp`; the feed's
publication date stays in `date`.
"""

from __future__ import annotations

import logging
import time
from datetime import date, datetime, timezone
from typing import Callable, Optional, Union

from fxproxy.models.constants import RATES_TTL_SECONDS
from fxproxy.models.rates import ISO_DATE_RE, CacheScope, RateSnapshot, RatesResponse
from .rates.base import ErrorKind, RateFeed, RatesError
from .rates.cache_service import TtlCache

logger = logging.getLogger("fxproxy.rates")

UPSTREAM_FAILURE_MESSAGE = "Failed to fetch rates from external API"


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


def parse_requested_date(
    raw: Optional[str], today: date
) -> Union[CacheScope, RatesError]:
    if raw is None or not raw.strip():
        return CacheScope.latest()
    trimmed = raw.strip()
    if not ISO_DATE_RE.match(trimmed):
        return RatesError(
            ErrorKind.INVALID_REQUEST, "Invalid date format. Use YYYY-MM-DD."
        )
    try:
        parsed = date.fromisoformat(trimmed)
    except ValueError:
        return RatesError(ErrorKind.INVALID_REQUEST, "Invalid request date.")
    if parsed.isoformat() != trimmed:
        return RatesError(ErrorKind.INVALID_REQUEST, "Invalid request date.")
    if parsed > today:
        return RatesError(ErrorKind.INVALID_REQUEST, "Date cannot be in the future.")
    return CacheScope(requested_date=parsed)


class RatesService:
    def __init__(
        self,
        feed: RateFeed,
        cache: Optional[TtlCache[str, RateSnapshot]] = None,
        *,
        ttl_seconds: float = RATES_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
        today: Callable[[], date] = _utc_today,
    ):
        self.feed = feed
        self.cache: TtlCache[str, RateSnapshot] = (
            cache if cache is not None else TtlCache(clock=clock)
        )
        self._ttl = ttl_seconds
        self._clock = clock
        self._today = today

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def get_rates(
        self, raw_date: Optional[str] = None
    ) -> Union[RatesResponse, RatesError]:
        scope = parse_requested_date(raw_date, self._today())
        if isinstance(scope, RatesError):
            return scope
        return await self.get_rates_for_scope(scope)

    async def get_rates_for_scope(
        self, scope: CacheScope
    ) -> Union[RatesResponse, RatesError]:
        key = scope.server_key()
        fresh = self.cache.get_fresh(key)
        if fresh is not None:
            return RatesResponse.stamped(fresh, self._now_ms())

        result = await self.feed.fetch(scope.requested_date)
        if not isinstance(result, RatesError):
            self.cache.set(key, result, self._ttl)
            logger.info("cached rates for %s (published %s)", key, result.date)
            return RatesResponse.stamped(result, self._now_ms())

        reason = result.describe()
        logger.warning("live rates fetch failed for %s [%s]: %s", key, result.kind.value, reason)
        stale = self.cache.get_stale(key)
        if stale is not None:
            logger.info(
                "[%s] serving stale rates for %s (published %s)",
                ErrorKind.UPSTREAM_DEGRADED.value,
                key,
                stale.date,
            )
            return RatesResponse.stamped(stale, self._now_ms(), stale_reason=result.message)
        return RatesError(
            ErrorKind.UPSTREAM_UNAVAILABLE,
            UPSTREAM_FAILURE_MESSAGE,
            details=reason,
        )
