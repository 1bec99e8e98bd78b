import logging
import time

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import get_settings, Settings
from .core.logging import init_logging, request_context_middleware
from .core import errors
from .routers import health, rates
from .services.rate_service import RatesService
from .services.rates.base import RateFeed
from .services.rates.cache_service import TtlCache
from .services.rates.providers import make_rate_feed


def create_app(
    settings_override: Settings | None = None,
    *,
    feed: RateFeed | None = None,
    cache: TtlCache | None = None,
) -> FastAPI:
    """Application factory.

    settings_override: pass an already constructed Settings instance for tests
    to isolate environment. Falls back to cached get_settings().
    feed / cache: injected collaborators; each app owns its own cache instance so
    tests never share state through a module global.
    """
    settings = settings_override or get_settings()
    # Initialize logging early
    init_logging(debug=settings.debug)

    app = FastAPI(
        title=settings.app_name, debug=settings.debug, version=settings.version
    )

    app.state.settings = settings
    app.state.rates_service = RatesService(
        feed or make_rate_feed(settings),
        cache if cache is not None else TtlCache(clock=time.time),
        ttl_seconds=settings.rates_cache_ttl_seconds,
    )

    # Middleware (request id / structured logging)
    app.middleware("http")(request_context_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    # Error handlers
    app.add_exception_handler(errors.ApiError, errors.api_error_handler)
    app.add_exception_handler(StarletteHTTPException, errors.http_error_handler)
    app.add_exception_handler(RequestValidationError, errors.validation_error_handler)
    app.add_exception_handler(Exception, errors.server_error_handler)

    # Routers
    app.include_router(health.router)
    app.include_router(rates.router)

    @app.get("/")
    async def root():
        return {"message": settings.app_name, "version": settings.version}

    logging.getLogger("fxproxy").info(
        "app created (feed=%s, ttl=%ss)",
        type(app.state.rates_service.feed).__name__,
        settings.rates_cache_ttl_seconds,
    )
    return app
