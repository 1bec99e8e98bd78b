import time

from fastapi import APIRouter

from fxproxy.models.rates import HealthResponse

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health", response_model=HealthResponse, summary="Liveness check")
async def health() -> HealthResponse:
    return HealthResponse(timestamp=int(time.time() * 1000))
