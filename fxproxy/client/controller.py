from __future__ import annotations

"""Client-side rates orchestration for one scope.

mount():
    1) show the persisted record for the scope right away (even if stale);
    2) stop there when it is still fresh;
    3) otherwise ask the API, keeping the persisted record as a fallback.
retry():
    same as 3) but re-reads the fallback from storage first, so it picks up
    records written by another process meanwhile.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Literal, Optional, Union

from fxproxy.core.config import Settings
from fxproxy.models.rates import CacheScope, PersistedRatesRecord, RatesMeta, RatesResponse
from fxproxy.services.rates.base import RatesError
from fxproxy.services.rates.conversion import ConversionResult, convert
from .api import RatesApiClient
from .cache import ClientRatesCache
from .history import ConversionHistory
from .storage import JsonFileStorage

logger = logging.getLogger("fxproxy.client.controller")

STALE_TITLE = "Using cached rates"
STALE_UPSTREAM_MESSAGE = "The server returned previously cached rates."
LOCAL_CACHE_MESSAGE = "Using rates from the local cache."
UNAVAILABLE_TITLE = "Rates unavailable"


@dataclass(frozen=True)
class Notification:
    kind: Literal["success", "error", "warn", "info"]
    title: str
    message: str


Notify = Callable[[Notification], None]


class RatesController:
    def __init__(
        self,
        api: RatesApiClient,
        cache: ClientRatesCache,
        *,
        requested_date: Optional[date] = None,
        notify: Optional[Notify] = None,
        now: Callable[[], datetime] = lambda: datetime.now().astimezone(),
        history: Optional[ConversionHistory] = None,
    ):
        self._api = api
        self._cache = cache
        self._history = history
        self._notify = notify
        self._now = now
        self.scope = CacheScope(requested_date=requested_date)

        self.rates_state: Optional[PersistedRatesRecord] = None
        self.is_loading: bool = True
        self.error: Optional[str] = None

    def _emit(self, notification: Notification) -> None:
        if self._notify is not None:
            self._notify(notification)

    async def mount(self) -> None:
        cached = self._cache.read(self.scope)
        self.rates_state = cached
        self.error = None
        if cached is not None and self._cache.is_fresh(cached):
            self.is_loading = False
            logger.debug("fresh local rates for %s", self.scope.client_key())
            return
        await self._load(cached)

    async def retry(self) -> None:
        await self._load(self._cache.read(self.scope))

    async def _load(self, fallback: Optional[PersistedRatesRecord]) -> None:
        self.is_loading = True
        try:
            result: Union[RatesResponse, RatesError] = await self._api.get_rates(
                self.scope.requested_date
            )
            if isinstance(result, RatesError):
                self._on_failure(result, fallback)
            else:
                self._on_success(result)
        finally:
            self.is_loading = False

    def _on_success(self, response: RatesResponse) -> None:
        record = PersistedRatesRecord(
            rates=dict(response.rates),
            meta=RatesMeta(
                timestamp=response.timestamp,
                date=response.date,
                last_updated_local_iso=self._now().isoformat(),
            ),
        )
        self.rates_state = record
        self.error = None
        try:
            self._cache.write(self.scope, record)
        except (OSError, ValueError) as e:
            # the live snapshot is still shown; it just is not cached locally
            logger.warning("cannot persist rates for %s: %s", self.scope.client_key(), e)
        if response.stale:
            self._emit(
                Notification("warn", STALE_TITLE, response.error or STALE_UPSTREAM_MESSAGE)
            )

    def _on_failure(
        self, error: RatesError, fallback: Optional[PersistedRatesRecord]
    ) -> None:
        logger.info("live rates request failed: %s", error.describe())
        if fallback is not None:
            self.rates_state = fallback
            self.error = None
            self._emit(Notification("warn", STALE_TITLE, LOCAL_CACHE_MESSAGE))
            return
        self.error = error.message
        self._emit(Notification("error", UNAVAILABLE_TITLE, error.message))

    def convert(self, amount: float, from_currency: str, to_currency: str) -> ConversionResult:
        if self.rates_state is None:
            raise ValueError("no rates loaded")
        result = convert(amount, from_currency, to_currency, self.rates_state.rates)
        if self._history is not None:
            try:
                self._history.add(result)
            except OSError as e:
                logger.warning("cannot record conversion history: %s", e)
        return result


def make_rates_controller(
    settings: Settings,
    *,
    requested_date: Optional[date] = None,
    notify: Optional[Notify] = None,
) -> RatesController:
    api = RatesApiClient(settings.client_api_base_url, timeout=settings.client_timeout_seconds)
    storage = JsonFileStorage(settings.client_storage_path)
    cache = ClientRatesCache(storage, ttl_seconds=settings.client_cache_ttl_seconds)
    return RatesController(
        api,
        cache,
        requested_date=requested_date,
        notify=notify,
        history=ConversionHistory(storage),
    )
