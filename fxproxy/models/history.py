from __future__ import annotations

import uuid
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import SUPPORTED_CURRENCIES

MAX_HISTORY_ITEMS = 10

DEFAULT_PREFERRED_FROM = "USD"
DEFAULT_PREFERRED_TO = "RUB"


def _new_id() -> str:
    return str(uuid.uuid4())


class ConversionHistoryItem(BaseModel):
    """One completed conversion as persisted under `conversionHistory`."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=_new_id)
    from_currency: str = Field(..., alias="from")
    to_currency: str = Field(..., alias="to")
    amount: float = Field(..., allow_inf_nan=False)
    result: float = Field(..., allow_inf_nan=False)
    timestamp: int = Field(..., description="Conversion instant, epoch milliseconds")
    rate_from: Optional[float] = Field(None, alias="rateFrom", allow_inf_nan=False)
    rate_to: Optional[float] = Field(None, alias="rateTo", allow_inf_nan=False)

    @field_validator("id", mode="before")
    @classmethod
    def ensure_id(cls, v: Any) -> str:
        # older entries may lack an id
        return v if isinstance(v, str) and v else _new_id()

    def to_storage(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class UserPreferences(BaseModel):
    """Preferred conversion pair; unknown codes fall back to the defaults."""

    model_config = ConfigDict(populate_by_name=True)

    preferred_from: str = Field(DEFAULT_PREFERRED_FROM, alias="preferredFrom")
    preferred_to: str = Field(DEFAULT_PREFERRED_TO, alias="preferredTo")

    @field_validator("preferred_from", mode="before")
    @classmethod
    def known_from(cls, v: Any) -> str:
        return v if v in SUPPORTED_CURRENCIES else DEFAULT_PREFERRED_FROM

    @field_validator("preferred_to", mode="before")
    @classmethod
    def known_to(cls, v: Any) -> str:
        return v if v in SUPPORTED_CURRENCIES else DEFAULT_PREFERRED_TO
