import logging

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from profileapi.containers import Container
from profileapi.repositories.base import StorageAdapter
from profileapi.schemas.health import HealthCheckResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/api/healthz", response_model=HealthCheckResponse)
@router.get("/health", response_model=HealthCheckResponse)
@router.get("/", response_model=HealthCheckResponse)
@inject
async def health_check(
    storage: StorageAdapter = Depends(Provide[Container.repositories.storage]),
):
    """Liveness plus storage connectivity; 503 when the backend is unreachable."""

    try:
        healthy = storage.health_check()
    except Exception as e:
        logger.error(f"Health check failed: {str(e)}")
        body = HealthCheckResponse(status="unhealthy", storage=storage.name, error=str(e))
        return JSONResponse(status_code=503, content=body.model_dump(exclude_none=True))

    if not healthy:
        body = HealthCheckResponse(status="unhealthy", storage=storage.name)
        return JSONResponse(status_code=503, content=body.model_dump(exclude_none=True))

    return HealthCheckResponse(storage=storage.name)
