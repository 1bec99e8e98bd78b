from typing import Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging

logger = logging.getLogger("fxproxy.errors")


class ApiError(Exception):
    """Raised by routers to produce a `{message, details?}` JSON error body."""

    def __init__(self, status_code: int, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.details = details

    def to_content(self) -> dict:
        content = {"message": self.message}
        if self.details is not None:
            content["details"] = self.details
        return content


def api_error_handler(request: Request, exc: ApiError):  # type: ignore
    return JSONResponse(status_code=exc.status_code, content=exc.to_content())


def http_error_handler(request: Request, exc: StarletteHTTPException):  # type: ignore
    # unmatched paths and unsupported methods are both "no such route"
    if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"message": "Route not found"},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


def validation_error_handler(request: Request, exc: RequestValidationError):  # type: ignore
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "message": "Invalid request parameters",
            "details": str(exc.errors()),
        },
    )


def server_error_handler(request: Request, exc: Exception):  # type: ignore
    logger.exception("unhandled server error")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "message": "Internal server error",
            "details": str(exc),
        },
    )
