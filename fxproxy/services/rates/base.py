from __future__ import annotations

"""Rate feed abstraction and the failure taxonomy shared by server and client.

Failures are returned as RatesError values rather than raised, so every caller
checks `isinstance(result, RatesError)` before using a snapshot.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional, Union

from fxproxy.models.rates import RateSnapshot


class ErrorKind(str, Enum):
    INVALID_REQUEST = "invalid_request"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    UPSTREAM_DEGRADED = "upstream_degraded"
    VALIDATION_FAILURE = "validation_failure"
    FETCH_FAILURE = "fetch_failure"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class RatesError:
    kind: ErrorKind
    message: str
    details: Optional[str] = None
    status_code: Optional[int] = None

    def describe(self) -> str:
        if self.details:
            return f"{self.message} ({self.details})"
        return self.message


FeedResult = Union[RateSnapshot, RatesError]


class RateFeed(ABC):
    base_currency: str = "RUB"

    @abstractmethod
    async def fetch(self, requested_date: Optional[date] = None) -> FeedResult:
        """Return a complete snapshot for the date (latest when None) or a RatesError."""
        raise NotImplementedError
