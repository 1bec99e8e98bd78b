from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

"""Cross-rate conversion over a rates snapshot.

Rates are "RUB per one unit of X", so amount * rate[from] gives RUB and dividing by
rate[to] gives the target currency. The base cancels out, which makes the same
formula correct for any pair, base included. No rounding happens here; display
formatting belongs to the UI.
"""


@dataclass(frozen=True)
class ConversionResult:
    amount: float
    from_currency: str
    to_currency: str
    rate_from: float
    rate_to: float
    result: float

    @property
    def cross_rate(self) -> float:
        return self.rate_from / self.rate_to


def convert(
    amount: float, from_currency: str, to_currency: str, rates: Mapping[str, float]
) -> ConversionResult:
    from_currency = from_currency.upper()
    to_currency = to_currency.upper()
    try:
        rate_from = rates[from_currency]
        rate_to = rates[to_currency]
    except KeyError as e:
        raise ValueError(f"unsupported currency {e.args[0]}") from e
    if rate_from <= 0 or rate_to <= 0:
        raise ValueError("rates must be positive")
    return ConversionResult(
        amount=amount,
        from_currency=from_currency,
        to_currency=to_currency,
        rate_from=rate_from,
        rate_to=rate_to,
        result=amount * rate_from / rate_to,
    )
