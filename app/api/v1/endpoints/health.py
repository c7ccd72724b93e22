"""
Health check endpoints.
"""
from typing import Any, Dict

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.core.config import Settings
from app.core.dependencies import get_app_settings, get_uow_factory
from app.core.exceptions import PersistenceError
from app.repositories.unit_of_work import UnitOfWorkFactory

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/health")
async def health_check(settings: Settings = Depends(get_app_settings)) -> Dict[str, Any]:
    """
    Basic health check endpoint.

    Returns:
        Health status
    """
    return {
        "status": "healthy",
        "service": "hextok-api",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
    }


@router.get("/health/ready")
async def readiness_check(
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
) -> JSONResponse:
    """
    Readiness check including the session store.

    Returns:
        Readiness status with component health
    """
    components = {
        "api": "healthy",
        "database": "unknown",
    }

    try:
        async with uow_factory() as uow:
            await uow.users.list_users(limit=1)
        components["database"] = "healthy"
    except PersistenceError as e:
        logger.warning("readiness_database_unhealthy", error=e.message)
        components["database"] = "unhealthy"

    ready = all(v == "healthy" for v in components.values())
    return JSONResponse(
        status_code=200 if ready else 503,
        content={"status": "ready" if ready else "not_ready", "components": components},
    )
