"""Global exception handling.

Domain errors map onto HTTP statuses by class; the first matching entry in
``ERROR_STATUS`` wins, so more specific classes come first.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.shared.errors import FraudEngineError, InvalidStateError

logger = structlog.get_logger()

ERROR_STATUS: tuple[tuple[type[Exception], int, str], ...] = (
    (InvalidStateError, 409, "conflict"),
    (ValueError, 400, "bad_request"),
    (PermissionError, 403, "forbidden"),
    (LookupError, 404, "not_found"),
)


def _error_response(status_code: int, error: str, message: str, request_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "message": message, "request_id": request_id},
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    request_id = getattr(request.state, "request_id", "unknown")

    for exc_class, status_code, error in ERROR_STATUS:
        if isinstance(exc, exc_class):
            logger.warning(error, request_id=request_id, error=str(exc))
            return _error_response(status_code, error, str(exc), request_id)

    logger.exception("unhandled_exception", request_id=request_id, error=str(exc))
    return _error_response(
        500, "internal_server_error", "An unexpected error occurred", request_id
    )


def register_exception_handlers(app: FastAPI) -> None:
    # Expected errors get their own entries so they are answered by the
    # exception middleware; the Exception entry only catches the rest.
    for exc_class in (FraudEngineError, ValueError, PermissionError, LookupError, Exception):
        app.add_exception_handler(exc_class, global_exception_handler)
