"""Currency constants shared by the server and the client cache."""

from typing import Tuple

BASE_CURRENCY = "RUB"

# Order matters for display and serialization; RUB is the base and always 1.0
SUPPORTED_CURRENCIES: Tuple[str, ...] = ("RUB", "USD", "EUR", "GBP", "CNY", "JPY", "CHF")
FOREIGN_CURRENCIES: Tuple[str, ...] = tuple(
    c for c in SUPPORTED_CURRENCIES if c != BASE_CURRENCY
)

RATES_TTL_SECONDS = 60 * 60
