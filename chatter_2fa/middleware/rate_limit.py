"""
Rate Limiting

``/validate`` and ``/check`` run before a session exists and take the user
ID from the request body, so they are throttled per client address to keep
code guessing slow.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from chatter_2fa.exception_handlers import create_error_response
from chatter_2fa.exceptions import ErrorCode

logger = logging.getLogger(__name__)

# In-process counters; several workers each keep their own
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    headers_enabled=True,
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Answer 429 in the service's error envelope, with Retry-After and X-RateLimit headers."""
    logger.warning(
        f"Rate limit hit on {request.url.path} by {get_remote_address(request)}: {exc.detail}",
        extra={"path": request.url.path, "error_code": ErrorCode.RATE_LIMIT_EXCEEDED.value},
    )
    response = create_error_response(
        status_code=429,
        message=f"Rate limit exceeded: {exc.detail}",
        error_code=ErrorCode.RATE_LIMIT_EXCEEDED,
        path=request.url.path,
    )
    return request.app.state.limiter._inject_headers(response, request.state.view_rate_limit)


def configure_rate_limiting(app: FastAPI) -> None:
    """
    Configure rate limiting for the FastAPI application.

    Args:
        app: FastAPI application instance
    """
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
