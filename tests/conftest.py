from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

import pytest

from fxproxy.models.rates import RateSnapshot
from fxproxy.services.rates.base import FeedResult, RateFeed

RATES: Dict[str, float] = {
    "RUB": 1.0,
    "USD": 91.2,
    "EUR": 99.1,
    "GBP": 115.7,
    "CNY": 12.6,
    "JPY": 0.61,
    "CHF": 103.4,
}


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeFeed(RateFeed):
    def __init__(self, result: FeedResult | Exception):
        self.result = result
        self.calls: List[Optional[date]] = []

    async def fetch(self, requested_date: Optional[date] = None) -> FeedResult:  # type: ignore[override]
        self.calls.append(requested_date)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


def make_snapshot(day: str = "2024-03-05", **overrides: float) -> RateSnapshot:
    rates = dict(RATES)
    rates.update(overrides)
    return RateSnapshot(date=day, rates=rates)


def cbr_document(**top: Any) -> Dict[str, Any]:
    """A trimmed cbr-xml-daily.ru payload with JPY quoted per 100 units."""
    doc: Dict[str, Any] = {
        "Date": "2024-03-05T11:30:00+03:00",
        "PreviousDate": "2024-03-02T11:30:00+03:00",
        "Timestamp": "2024-03-04T20:00:00+03:00",
        "Valute": {
            "AUD": {"CharCode": "AUD", "Nominal": 1, "Name": "Australian dollar", "Value": 59.4, "Previous": 59.1},
            "USD": {"CharCode": "USD", "Nominal": 1, "Name": "US dollar", "Value": 91.2, "Previous": 90.8},
            "EUR": {"CharCode": "EUR", "Nominal": 1, "Name": "Euro", "Value": 99.1, "Previous": 98.7},
            "GBP": {"CharCode": "GBP", "Nominal": 1, "Name": "Pound sterling", "Value": 115.7, "Previous": 115.0},
            "CNY": {"CharCode": "CNY", "Nominal": 1, "Name": "Yuan", "Value": 12.6, "Previous": 12.5},
            "JPY": {"CharCode": "JPY", "Nominal": 100, "Name": "Yen", "Value": 61.0, "Previous": 60.5},
            "CHF": {"CharCode": "CHF", "Nominal": 1, "Name": "Swiss franc", "Value": 103.4, "Previous": 103.0},
        },
    }
    doc.update(top)
    return doc


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def snapshot() -> RateSnapshot:
    return make_snapshot()
