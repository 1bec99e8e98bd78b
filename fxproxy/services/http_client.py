from __future__ import annotations

"""Lightweight async HTTP helper for fetching JSON documents.

Uses httpx.AsyncClient with a hard timeout. Focus: GET JSON with optional limited
retries; a timeout is reported as HttpTimeout so callers can tell it apart from
other transport failures.
"""
import asyncio
import logging
from typing import Any, Optional

import httpx

logger = logging.getLogger("fxproxy.http")


class HttpError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class HttpTimeout(HttpError):
    pass


async def get_json(
    url: str,
    *,
    timeout: float = 8.0,
    retries: int = 0,
    backoff: float = 0.5,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Any:
    last_err: Optional[HttpError] = None
    async with httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        headers={"Accept": "application/json"},
        transport=transport,
    ) as client:
        for attempt in range(retries + 1):
            try:
                resp = await client.get(url)
                if resp.status_code >= 400:
                    raise HttpError(f"HTTP {resp.status_code}", resp.status_code)
                return resp.json()
            except httpx.TimeoutException as e:
                last_err = HttpTimeout(f"request timed out after {timeout:g}s: {e}")
            except httpx.HTTPError as e:
                last_err = HttpError(f"network error: {e}")
            except HttpError as e:
                last_err = e
            except ValueError as e:  # JSON decode
                last_err = HttpError(f"invalid JSON body: {e}")
            if attempt == retries:
                break
            logger.debug("retrying %s after failure: %s", url, last_err)
            await asyncio.sleep(backoff * (2**attempt))
    raise last_err or HttpError(f"Failed to fetch JSON from {url}")
