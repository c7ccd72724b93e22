"""
Exception handlers that render the error taxonomy as JSON responses.
"""
import structlog
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.errors import ErrorCode, ErrorResponse
from app.core.exceptions import HextokException

logger = structlog.get_logger(__name__)


def error_response(exc: HextokException) -> JSONResponse:
    """Render an exception with its public message only."""
    if exc.status_code >= 500:
        logger.error(
            "request_failed",
            error_type=type(exc).__name__,
            error_code=exc.code.value,
            detail=exc.message,
        )
    else:
        logger.info(
            "request_rejected",
            error_type=type(exc).__name__,
            error_code=exc.code.value,
            status_code=exc.status_code,
        )

    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().to_dict(),
        headers=headers,
    )


async def hextok_exception_handler(request: Request, exc: HextokException) -> JSONResponse:
    return error_response(exc)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request input is a 400 client error."""
    logger.info("request_validation_failed", path=request.url.path, errors=len(exc.errors()))
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(code=ErrorCode.VAL_INVALID_INPUT).to_dict(),
    )
