from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from starlette import status

from fxproxy.core.errors import ApiError
from fxproxy.models.rates import ErrorResponse, RatesResponse
from fxproxy.services.rate_service import RatesService
from fxproxy.services.rates.base import ErrorKind, RatesError

"""Rates router.

Endpoints:
    - GET /api/rates              -> latest rates
    - GET /api/rates?date=YYYY-MM-DD -> rates published for a past date

200 responses may carry `stale: true` plus `error` when the feed failed and a
previously cached snapshot was served instead.
"""

router = APIRouter(prefix="/api/rates", tags=["rates"])

_STATUS_BY_KIND = {
    ErrorKind.INVALID_REQUEST: status.HTTP_400_BAD_REQUEST,
    ErrorKind.UPSTREAM_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def get_rates_service(request: Request) -> RatesService:
    return request.app.state.rates_service


@router.get(
    "",
    response_model=RatesResponse,
    response_model_exclude_none=True,
    summary="Get daily exchange rates (RUB per unit)",
    responses={
        400: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def get_rates(
    date: Optional[str] = Query(None, description="Publication date YYYY-MM-DD (defaults to latest)"),
    svc: RatesService = Depends(get_rates_service),
):
    result = await svc.get_rates(date)
    if isinstance(result, RatesError):
        code = _STATUS_BY_KIND.get(result.kind, status.HTTP_503_SERVICE_UNAVAILABLE)
        # 400 bodies carry only the message
        details = result.details if code != status.HTTP_400_BAD_REQUEST else None
        raise ApiError(code, result.message, details)
    return result
