from __future__ import annotations

"""Concrete rate feeds and factory.

CbrDailyFeed owns all knowledge of the cbr-xml-daily.ru document layout:
    {"Date": "...", "PreviousDate": "...",
     "Valute": {"USD": {"CharCode": "USD", "Nominal": 1, "Value": 91.2}, ...}}

StaticRateFeed returns fixed placeholders so the API can run offline.
"""
import logging
import math
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Dict, Optional, Union

import httpx
from pydantic import ValidationError

from fxproxy.core.config import Settings
from fxproxy.models.constants import BASE_CURRENCY, FOREIGN_CURRENCIES
from fxproxy.models.rates import RateSnapshot
from fxproxy.services.http_client import HttpError, HttpTimeout, get_json
from .base import ErrorKind, FeedResult, RateFeed, RatesError

logger = logging.getLogger("fxproxy.feed")

_DATE_PREFIX_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")

_STATIC_RATES: Dict[str, float] = {
    "RUB": 1.0,
    "USD": 90.0,
    "EUR": 98.0,
    "GBP": 114.0,
    "CNY": 12.4,
    "JPY": 0.6,
    "CHF": 101.5,
}


def _invalid(message: str, details: Optional[str] = None) -> RatesError:
    return RatesError(ErrorKind.VALIDATION_FAILURE, message, details)


def _to_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def normalize_feed_date(raw: str) -> Union[str, RatesError]:
    """Reduce a feed date (ISO datetime, ISO date or RFC 2822) to YYYY-MM-DD."""
    m = _DATE_PREFIX_RE.match(raw)
    if m:
        try:
            return date.fromisoformat(m.group(0)).isoformat()
        except ValueError:
            return _invalid("Invalid date format in CBR payload", raw)
    parsed: Optional[datetime] = None
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        try:
            parsed = parsedate_to_datetime(raw)
        except (TypeError, ValueError, IndexError):
            parsed = None
    if parsed is None:
        return _invalid("Invalid date format in CBR payload", raw)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.date().isoformat()


def rub_per_unit(item: Dict[str, Any], code: str) -> Union[float, RatesError]:
    nominal = _to_float(item.get("Nominal"))
    if nominal is None or nominal <= 0:
        return _invalid(f"Invalid nominal for {code}")
    value = _to_float(item.get("Value"))
    if value is None:
        return _invalid(f"Invalid rate value for {code}")
    rate = value / nominal
    if not math.isfinite(rate) or rate <= 0:
        return _invalid(f"Invalid rate value for {code}")
    return rate


@dataclass(frozen=True)
class ParsedDocument:
    snapshot: RateSnapshot
    # "Date" or "PreviousDate": which field supplied the publication date
    date_field: str


def parse_daily_document(payload: Any) -> Union[ParsedDocument, RatesError]:
    if not isinstance(payload, dict):
        return _invalid("CBR payload is not a JSON object")

    valute = payload.get("Valute")
    if not isinstance(valute, dict) or not valute:
        return _invalid("CBR payload is missing Valute field")

    date_field = "Date" if payload.get("Date") else "PreviousDate"
    raw_date = payload.get(date_field)
    if not raw_date:
        return _invalid("CBR payload is missing Date and PreviousDate")
    if not isinstance(raw_date, str):
        return _invalid("Invalid date format in CBR payload", repr(raw_date))

    by_code: Dict[str, Dict[str, Any]] = {}
    for item in valute.values():
        if isinstance(item, dict) and isinstance(item.get("CharCode"), str):
            by_code[item["CharCode"]] = item

    rates: Dict[str, float] = {BASE_CURRENCY: 1.0}
    for code in FOREIGN_CURRENCIES:
        item = by_code.get(code)
        if item is None:
            return _invalid(f"Currency {code} is missing in CBR response")
        rate = rub_per_unit(item, code)
        if isinstance(rate, RatesError):
            return rate
        rates[code] = rate

    normalized = normalize_feed_date(raw_date)
    if isinstance(normalized, RatesError):
        return normalized

    try:
        snapshot = RateSnapshot(base=BASE_CURRENCY, date=normalized, rates=rates)
    except ValidationError as e:
        return _invalid("CBR payload failed snapshot validation", str(e))
    return ParsedDocument(snapshot=snapshot, date_field=date_field)


class CbrDailyFeed(RateFeed):
    def __init__(
        self,
        latest_url: str,
        archive_url: str,
        *,
        timeout: float = 8.0,
        retries: int = 0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._latest_url = latest_url
        self._archive_url = archive_url
        self._timeout = timeout
        self._retries = retries
        self._transport = transport

    def url_for(self, requested_date: Optional[date]) -> str:
        if requested_date is None:
            return self._latest_url
        return self._archive_url.format(
            year=requested_date.year, month=requested_date.month, day=requested_date.day
        )

    async def fetch(self, requested_date: Optional[date] = None) -> FeedResult:  # type: ignore[override]
        url = self.url_for(requested_date)
        try:
            payload = await get_json(
                url,
                timeout=self._timeout,
                retries=self._retries,
                transport=self._transport,
            )
        except HttpTimeout as e:
            return RatesError(ErrorKind.TIMEOUT, "CBR request timed out", str(e))
        except HttpError as e:
            if e.status_code is not None:
                return RatesError(
                    ErrorKind.FETCH_FAILURE,
                    "CBR API returned a non-OK status",
                    f"HTTP {e.status_code}",
                    status_code=e.status_code,
                )
            return RatesError(ErrorKind.FETCH_FAILURE, "Failed to fetch CBR rates", str(e))
        except Exception as e:  # noqa: BLE001 - nothing transport-level may escape the feed
            logger.exception("unexpected CBR fetch error for %s", url)
            return RatesError(ErrorKind.FETCH_FAILURE, "Failed to fetch CBR rates", str(e))

        parsed = parse_daily_document(payload)
        if isinstance(parsed, RatesError):
            return parsed
        if parsed.date_field != "Date":
            logger.warning(
                "CBR payload has no Date; using PreviousDate %s", parsed.snapshot.date
            )
        return parsed.snapshot


class StaticRateFeed(RateFeed):
    def __init__(self, today: Callable[[], date] | None = None):
        self._today = today or (lambda: datetime.now(timezone.utc).date())

    async def fetch(self, requested_date: Optional[date] = None) -> FeedResult:  # type: ignore[override]
        day = requested_date or self._today()
        return RateSnapshot(date=day.isoformat(), rates=dict(_STATIC_RATES))


def make_rate_feed(settings: Settings) -> RateFeed:
    kind = settings.rate_feed
    if kind == "cbr":
        return CbrDailyFeed(
            settings.feed_latest_url,
            settings.feed_archive_url,
            timeout=settings.feed_timeout_seconds,
            retries=settings.feed_retries,
        )
    if kind == "static":
        return StaticRateFeed()
    raise ValueError(f"Unknown rate feed kind '{kind}'")
