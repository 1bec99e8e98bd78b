from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional, Union

import httpx
from pydantic import ValidationError

from fxproxy.models.rates import RatesResponse
from fxproxy.services.rates.base import ErrorKind, RatesError

logger = logging.getLogger("fxproxy.client.api")

TIMEOUT_MESSAGE = "Request timed out"
NETWORK_MESSAGE = "Network error. Check your connection and try again."
UNAVAILABLE_MESSAGE = "Rates service is temporarily unavailable"
NOT_FOUND_MESSAGE = "Requested resource not found"
BAD_PAYLOAD_MESSAGE = "Malformed rates response"


def error_message_for(payload: Any, status_code: int) -> str:
    """User-facing text for a non-2xx response; prefers the backend's own message."""
    if isinstance(payload, dict) and isinstance(payload.get("message"), str) and payload["message"]:
        return payload["message"]
    if status_code == 404:
        return NOT_FOUND_MESSAGE
    if status_code == 408:
        return TIMEOUT_MESSAGE
    if status_code >= 500:
        return UNAVAILABLE_MESSAGE
    return f"Request failed with status {status_code}"


class RatesApiClient:
    """Thin async client for GET /api/rates returning a validated response or a RatesError."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 9.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def get_rates(
        self, requested_date: Optional[date] = None
    ) -> Union[RatesResponse, RatesError]:
        params = {"date": requested_date.isoformat()} if requested_date else None
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                headers={"Accept": "application/json"},
                transport=self._transport,
            ) as client:
                resp = await client.get(f"{self._base_url}/rates", params=params)
        except httpx.TimeoutException:
            return RatesError(ErrorKind.TIMEOUT, TIMEOUT_MESSAGE, status_code=408)
        except httpx.HTTPError as e:
            logger.debug("rates request failed: %s", e)
            return RatesError(ErrorKind.FETCH_FAILURE, NETWORK_MESSAGE, str(e), status_code=0)

        try:
            payload = resp.json()
        except ValueError:
            payload = None

        if resp.status_code >= 400:
            kind = (
                ErrorKind.INVALID_REQUEST
                if resp.status_code == 400
                else ErrorKind.UPSTREAM_UNAVAILABLE
            )
            return RatesError(
                kind,
                error_message_for(payload, resp.status_code),
                resp.text or None,
                status_code=resp.status_code,
            )

        if not isinstance(payload, dict):
            return RatesError(
                ErrorKind.VALIDATION_FAILURE, BAD_PAYLOAD_MESSAGE, status_code=resp.status_code
            )
        try:
            return RatesResponse.model_validate(payload)
        except ValidationError as e:
            return RatesError(
                ErrorKind.VALIDATION_FAILURE,
                BAD_PAYLOAD_MESSAGE,
                str(e),
                status_code=resp.status_code,
            )
