"""
Hextok API - Main application entry point.

Run with ``uvicorn app.main:create_app --factory``.
"""
import time
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, Optional

import aiohttp
import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sentry_sdk.integrations.asgi import SentryAsgiMiddleware
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from structlog.contextvars import bind_contextvars, clear_contextvars

from app.api.errors import hextok_exception_handler, validation_exception_handler
from app.api.v1.router import api_router
from app.core.config import Settings, get_settings
from app.core.errors import ErrorCode, ErrorResponse
from app.core.exceptions import HextokException
from app.core.logging import get_logger, log_request_details, setup_logging
from app.infrastructure.database.base import Base, create_engine, create_session_factory
from app.infrastructure.database import models  # noqa: F401  registers tables
from app.repositories.unit_of_work import UnitOfWorkFactory, unit_of_work_factory

logger = get_logger(__name__)


def init_sentry(settings: Settings) -> None:
    """Initialize Sentry if configured."""
    if not settings.SENTRY_DSN:
        return
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.SENTRY_ENVIRONMENT or settings.ENVIRONMENT,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        integrations=[
            SqlalchemyIntegration(),
        ],
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Builds the database engine and the shared outbound HTTP session unless
    they were supplied to ``create_app``.
    """
    settings: Settings = app.state.settings
    logger.info(
        "Starting Hextok API",
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    engine = None
    if getattr(app.state, "uow_factory", None) is None:
        engine = create_engine(settings)
        # Note: In production, manage the schema with migrations instead
        if settings.ENVIRONMENT in ("development", "test"):
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        app.state.uow_factory = unit_of_work_factory(create_session_factory(engine))

    http_session = None
    if getattr(app.state, "http_session", None) is None:
        http_session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=settings.OAUTH_HTTP_TIMEOUT_SECONDS),
        )
        app.state.http_session = http_session

    yield

    # Shutdown
    logger.info("Shutting down Hextok API")
    if http_session is not None:
        await http_session.close()
    if engine is not None:
        await engine.dispose()


def create_app(
    settings: Optional[Settings] = None,
    uow_factory: Optional[UnitOfWorkFactory] = None,
    clock: Callable[[], float] = time.time,
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        settings: Immutable settings; loaded from the environment when omitted
        uow_factory: Pre-built store access, skipping engine creation
        clock: Time source for state and handoff token expiry
    """
    settings = settings or get_settings()
    setup_logging(settings)
    init_sentry(settings)

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.APP_VERSION,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json" if not settings.is_production else None,
        docs_url=f"{settings.API_V1_PREFIX}/docs" if not settings.is_production else None,
        redoc_url=f"{settings.API_V1_PREFIX}/redoc" if not settings.is_production else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.clock = clock
    app.state.uow_factory = uow_factory
    app.state.http_session = None

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add request logging middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all requests with timing information."""
        start_time = time.time()

        logger.info(
            "Request started",
            **log_request_details(
                request_id=request.headers.get("X-Request-ID", ""),
                method=request.method,
                path=request.url.path,
                client_ip=request.client.host if request.client else None,
            ),
        )

        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "Request completed",
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )
        return response

    # Add request ID middleware; registered last so it runs first
    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        """Add unique request ID to each request."""
        request_id = request.headers.get("X-Request-ID", str(time.time_ns()))

        clear_contextvars()
        bind_contextvars(request_id=request_id)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    if settings.SENTRY_DSN:
        app.add_middleware(SentryAsgiMiddleware)

    app.add_exception_handler(HextokException, hextok_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle all unhandled exceptions."""
        logger.error(
            "Unhandled exception",
            exc_info=exc,
            path=request.url.path,
            method=request.method,
        )
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(code=ErrorCode.SYS_INTERNAL_ERROR).to_dict(),
        )

    @app.get("/health")
    async def health_check() -> Dict[str, Any]:
        """
        Health check endpoint.

        Returns:
            Health status and application info
        """
        return {
            "status": "healthy",
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
        }

    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    return app
