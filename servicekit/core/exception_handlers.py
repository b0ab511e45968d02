"""Global exception handlers for consistent error responses.

Design:
- ServiceError subclasses -> error frame with a status mapped from the code
- Unexpected Exception -> generic 500 frame (safety net)
- All responses carry the request id for correlation
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from servicekit.core.errors import ErrorCodes, RateLimitExceededError, ServiceError
from servicekit.core.logging import get_request_id
from servicekit.schemas.envelope import error_frame, frame_from_error

logger = logging.getLogger(__name__)

STATUS_BY_CODE: dict[str, int] = {
    ErrorCodes.VALIDATION_ERROR: 400,
    ErrorCodes.UNKNOWN_ENDPOINT: 404,
    ErrorCodes.UNKNOWN_SERVICE: 404,
    ErrorCodes.RATE_LIMIT_EXCEEDED: 429,
    ErrorCodes.INTERNAL_ERROR: 500,
    ErrorCodes.CONFIGURATION_ERROR: 500,
    ErrorCodes.TRANSPORT_ERROR: 502,
    ErrorCodes.HANDLER_TIMEOUT: 504,
}


def status_for_code(code: str) -> int:
    """HTTP status for an error code; unknown codes map to 500."""
    return STATUS_BY_CODE.get(code, 500)


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Render a ``ServiceError`` raised by a route as an error frame.

    Raw-mode calls surface executor failures as exceptions; this handler
    gives them the same JSON shape as framed errors.

    Args:
        request: FastAPI request object.
        exc: ServiceError instance (or subclass).

    Returns:
        JSONResponse with the mapped status code and an error frame body.
    """
    status_code = status_for_code(exc.code)
    request_id = exc.request_id or get_request_id()

    logger.warning(
        "service_error_handled",
        extra={
            "error_code": exc.code,
            "error_msg": exc.message,
            "status_code": status_code,
            "request_id": request_id,
        },
    )

    headers: dict[str, str] | None = None
    if isinstance(exc, RateLimitExceededError):
        headers = {"Retry-After": str(max(1, -(-exc.retry_after_ms // 1000)))}

    return JSONResponse(
        status_code=status_code,
        content=frame_from_error(request_id, exc).to_wire(),
        headers=headers,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs the failure and returns a generic message; no implementation
    details or stack traces reach the client.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        },
    )

    frame = error_frame(
        get_request_id(),
        "internal_server_error",
        "An unexpected error occurred. Please try again later.",
    )
    return JSONResponse(status_code=500, content=frame.to_wire())


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.exception_handler(ServiceError)(service_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
