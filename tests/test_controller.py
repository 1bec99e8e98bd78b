import asyncio
from datetime import date, datetime, timezone
from typing import List, Optional

import pytest

from fxproxy.client.cache import ClientRatesCache
from fxproxy.client.controller import (
    LOCAL_CACHE_MESSAGE,
    Notification,
    RatesController,
    make_rates_controller,
)
from fxproxy.client.history import ConversionHistory
from fxproxy.client.storage import JsonFileStorage, MemoryStorage
from fxproxy.core.config import Settings
from fxproxy.models.rates import CacheScope, PersistedRatesRecord, RatesMeta, RatesResponse
from fxproxy.services.rates.base import ErrorKind, RatesError

from .conftest import RATES, FakeClock, make_snapshot

NOW = datetime(2024, 3, 5, 12, 0, tzinfo=timezone.utc)


class FakeApi:
    def __init__(self, result):
        self.result = result
        self.calls: List[Optional[date]] = []

    async def get_rates(self, requested_date=None):
        self.calls.append(requested_date)
        return self.result


def _persist(cache: ClientRatesCache, scope: CacheScope, ts_ms: float, day: str = "2024-03-04") -> PersistedRatesRecord:
    rec = PersistedRatesRecord(
        rates=dict(RATES),
        meta=RatesMeta(timestamp=ts_ms, date=day, last_updated_local_iso="2024-03-04T10:00:00+00:00"),
    )
    cache.write(scope, rec)
    return rec


def _controller(api, cache, notes, requested_date=None) -> RatesController:
    return RatesController(api, cache, requested_date=requested_date, notify=notes.append, now=lambda: NOW)


@pytest.fixture
def cache(clock: FakeClock) -> ClientRatesCache:
    return ClientRatesCache(MemoryStorage(), clock=clock)


def test_fresh_persisted_record_skips_network(cache, clock) -> None:
    rec = _persist(cache, CacheScope.latest(), clock.now * 1000 - 60_000)
    api = FakeApi(RatesError(ErrorKind.FETCH_FAILURE, "should not be called"))
    notes: List[Notification] = []
    ctl = _controller(api, cache, notes)

    asyncio.run(ctl.mount())
    assert api.calls == []
    assert ctl.rates_state == rec
    assert ctl.is_loading is False
    assert ctl.error is None
    assert notes == []


def test_live_success_replaces_state_and_persists(cache, clock) -> None:
    live = RatesResponse.stamped(make_snapshot("2024-03-05", USD=92.0), 1_700_000_100_000)
    api = FakeApi(live)
    notes: List[Notification] = []
    ctl = _controller(api, cache, notes, requested_date=date(2024, 3, 5))

    asyncio.run(ctl.mount())
    assert api.calls == [date(2024, 3, 5)]
    assert ctl.rates_state.rates["USD"] == 92.0
    assert ctl.rates_state.meta.timestamp == 1_700_000_100_000
    assert ctl.rates_state.meta.last_updated_local_iso == NOW.isoformat()
    assert cache.read(CacheScope(date(2024, 3, 5))) == ctl.rates_state
    assert cache.read(CacheScope.latest()) is None
    assert notes == []
    assert ctl.is_loading is False


def test_stale_live_response_warns(cache) -> None:
    live = RatesResponse.stamped(make_snapshot(), 1, stale_reason="CBR request timed out")
    notes: List[Notification] = []
    ctl = _controller(FakeApi(live), cache, notes)
    asyncio.run(ctl.mount())
    assert ctl.error is None
    assert [(n.kind, n.message) for n in notes] == [("warn", "CBR request timed out")]


def test_stale_persisted_record_with_failing_api_falls_back(cache, clock) -> None:
    rec = _persist(cache, CacheScope.latest(), clock.now * 1000 - 2 * 3600 * 1000)
    api = FakeApi(RatesError(ErrorKind.UPSTREAM_UNAVAILABLE, "Rates service is temporarily unavailable"))
    notes: List[Notification] = []
    ctl = _controller(api, cache, notes)

    asyncio.run(ctl.mount())
    assert len(api.calls) == 1
    assert ctl.rates_state == rec
    assert ctl.error is None
    assert ctl.is_loading is False
    assert [(n.kind, n.message) for n in notes] == [("warn", LOCAL_CACHE_MESSAGE)]


def test_no_fallback_anywhere_sets_error(cache) -> None:
    api = FakeApi(RatesError(ErrorKind.TIMEOUT, "Request timed out", status_code=408))
    notes: List[Notification] = []
    ctl = _controller(api, cache, notes)

    asyncio.run(ctl.mount())
    assert ctl.rates_state is None
    assert ctl.error == "Request timed out"
    assert ctl.is_loading is False
    assert [n.kind for n in notes] == ["error"]
    with pytest.raises(ValueError):
        ctl.convert(1, "USD", "EUR")


def test_retry_rereads_fallback_from_storage(cache, clock) -> None:
    api = FakeApi(RatesError(ErrorKind.FETCH_FAILURE, "Network error"))
    notes: List[Notification] = []
    ctl = _controller(api, cache, notes)
    asyncio.run(ctl.mount())
    assert ctl.error == "Network error"

    # another process persisted rates in the meantime
    rec = _persist(cache, CacheScope.latest(), clock.now * 1000 - 2 * 3600 * 1000)
    asyncio.run(ctl.retry())
    assert ctl.rates_state == rec
    assert ctl.error is None
    assert notes[-1].message == LOCAL_CACHE_MESSAGE

    api.result = RatesResponse.stamped(make_snapshot("2024-03-05"), 5)
    asyncio.run(ctl.retry())
    assert ctl.rates_state.meta.date == "2024-03-05"
    assert len(api.calls) == 3


def test_convert_uses_current_rates(cache, clock) -> None:
    _persist(cache, CacheScope.latest(), clock.now * 1000)
    ctl = _controller(FakeApi(None), cache, [])
    asyncio.run(ctl.mount())
    res = ctl.convert(100, "usd", "rub")
    assert res.result == pytest.approx(100 * RATES["USD"])


def test_make_rates_controller_wires_settings(tmp_path) -> None:
    settings = Settings(data_dir=tmp_path, client_cache_ttl_seconds=60)
    ctl = make_rates_controller(settings, requested_date=date(2024, 3, 5))
    assert ctl.scope.client_key() == "date:2024-03-05"
    assert isinstance(ctl._cache._storage, JsonFileStorage)
    assert ctl._cache._storage.path == tmp_path / "client_storage.json"
    assert isinstance(ctl._history, ConversionHistory)


class FailingStorage(MemoryStorage):
    def write(self, key, value):
        raise OSError("disk full")


def test_persist_failure_keeps_live_rates(clock) -> None:
    cache = ClientRatesCache(FailingStorage(), clock=clock)
    live = RatesResponse.stamped(make_snapshot("2024-03-05", USD=92.0), 1_700_000_100_000)
    notes: List[Notification] = []
    ctl = _controller(FakeApi(live), cache, notes)

    asyncio.run(ctl.mount())
    assert ctl.rates_state is not None
    assert ctl.rates_state.rates["USD"] == 92.0
    assert ctl.error is None
    assert ctl.is_loading is False
    assert notes == []
    assert cache.read(CacheScope.latest()) is None


def test_convert_records_history(cache, clock) -> None:
    _persist(cache, CacheScope.latest(), clock.now * 1000)
    storage = MemoryStorage()
    history = ConversionHistory(storage, clock=clock)
    ctl = RatesController(FakeApi(None), cache, now=lambda: NOW, history=history)
    asyncio.run(ctl.mount())

    ctl.convert(10, "USD", "EUR")
    ctl.convert(5, "GBP", "RUB")
    items = history.items()
    assert [(i.from_currency, i.to_currency, i.amount) for i in items] == [
        ("GBP", "RUB", 5),
        ("USD", "EUR", 10),
    ]
    assert items[1].rate_from == RATES["USD"] and items[1].rate_to == RATES["EUR"]

    # history storage failing does not break conversion
    failing = RatesController(
        FakeApi(None), cache, now=lambda: NOW, history=ConversionHistory(FailingStorage(), clock=clock)
    )
    asyncio.run(failing.mount())
    assert failing.convert(1, "USD", "RUB").result == pytest.approx(RATES["USD"])
