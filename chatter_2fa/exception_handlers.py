"""
Global Exception Handlers for the Chatter 2FA service

Every error leaves the service in one envelope:

{
    "error": {
        "status_code": 400,
        "error_code": "TWO_FACTOR_NOT_ENABLED",
        "message": "2FA is not enabled for this user",
        "type": "Bad Request",
        "path": "/api/v1/2fa/validate"
    }
}

A wrong code is not an error and never reaches these handlers.
"""

import logging
from http import HTTPStatus
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from chatter_2fa.exceptions import ChatterError, ErrorCode, MalformedSecretError

logger = logging.getLogger(__name__)

GENERIC_SERVER_ERROR = "An unexpected error occurred. Please try again later."

# error_code reported for plain HTTPExceptions raised by the framework
HTTP_ERROR_CODES = {
    400: ErrorCode.VALIDATION_FAILED,
    401: ErrorCode.AUTH_FAILED,
    403: ErrorCode.AUTH_PERMISSION_DENIED,
    404: ErrorCode.RESOURCE_NOT_FOUND,
    405: ErrorCode.RESOURCE_NOT_FOUND,
    422: ErrorCode.VALIDATION_FAILED,
    429: ErrorCode.RATE_LIMIT_EXCEEDED,
    500: ErrorCode.INTERNAL_ERROR,
    503: ErrorCode.SERVICE_UNAVAILABLE,
}


def get_error_type(status_code: int) -> str:
    """Reason phrase for ``status_code`` ("Bad Request"), or "Error" if unknown."""
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


def create_error_response(
    status_code: int,
    message: str,
    error_code: str | ErrorCode | None = None,
    details: dict[str, Any] | None = None,
    path: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """
    Build the error envelope.

    Args:
        status_code: HTTP status code
        message: Human-readable error message
        error_code: Machine-readable error code
        details: Extra structured information, omitted when empty
        path: Request path that caused the error
        headers: Extra response headers
    """
    body: dict[str, Any] = {
        "status_code": status_code,
        "message": message,
        "type": get_error_type(status_code),
    }
    if error_code:
        body["error_code"] = error_code.value if isinstance(error_code, ErrorCode) else error_code
    if details:
        body["details"] = details
    if path:
        body["path"] = path

    return JSONResponse(status_code=status_code, content={"error": body}, headers=headers)


async def chatter_exception_handler(request: Request, exc: ChatterError) -> JSONResponse:
    """
    Render a service exception.

    A malformed secret means a stored record is corrupted. It is logged as
    such and reported to the client as a generic server error.
    """
    path = request.url.path

    if isinstance(exc, MalformedSecretError):
        logger.error(
            f"Stored 2FA secret failed to decode, record may be corrupted: {exc.message}",
            extra={"path": path, "error_code": exc.error_code.value, "details": exc.details},
        )
        return create_error_response(exc.status_code, GENERIC_SERVER_ERROR, exc.error_code, path=path)

    logger.log(
        logging.ERROR if exc.status_code >= 500 else logging.WARNING,
        f"{type(exc).__name__}: {exc.message}",
        extra={"path": path, "status_code": exc.status_code, "error_code": exc.error_code.value},
    )

    headers = None
    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}

    return create_error_response(
        exc.status_code,
        exc.message,
        exc.error_code,
        details=exc.details,
        path=path,
        headers=headers,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render routing and framework HTTP errors (404, 405, ...)."""
    logger.warning(f"HTTP {exc.status_code}: {exc.detail}", extra={"path": request.url.path})
    return create_error_response(
        exc.status_code,
        str(exc.detail),
        HTTP_ERROR_CODES.get(exc.status_code, ErrorCode.UNKNOWN_ERROR),
        path=request.url.path,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render request body validation failures as 422 with per-field messages."""
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"] if part != "body"),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    # Never log "input": it may be a one-time code
    fields = [error["field"] for error in errors]
    logger.warning(f"Validation error on {request.url.path}", extra={"details": {"fields": fields}})

    return create_error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation error",
        ErrorCode.VALIDATION_FAILED,
        details={"validation_errors": errors},
        path=request.url.path,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log the traceback, tell the client nothing."""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}", exc_info=exc)
    return create_error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        GENERIC_SERVER_ERROR,
        ErrorCode.INTERNAL_ERROR,
        path=request.url.path,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all handlers to ``app``."""
    app.add_exception_handler(ChatterError, chatter_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
