"""
Structured Logging Middleware

One access log line per request, tagged with a request ID that every other
log record emitted while serving the request carries too. Bodies and query
strings are never logged: they carry one-time codes and user IDs.
"""

import json
import logging
import time
import uuid
from collections.abc import Callable
from contextvars import ContextVar
from datetime import datetime, timezone

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Scraped or polled constantly; no access log line
QUIET_PATHS = frozenset({"/health", "/metrics"})

TWO_FACTOR_PREFIX = "/api/v1/2fa/"

# Record attributes copied into JSON output when a log call passes them as ``extra``
EXTRA_FIELDS = ("method", "path", "operation", "status_code", "duration_ms", "client", "error_code", "details")


class RequestIdFilter(logging.Filter):
    """Stamp each record with the ID of the request being served."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "request_id", ""):
            record.request_id = request_id_var.get()
        return True


class StructuredFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "request_id": getattr(record, "request_id", ""),
        }
        entry.update({key: getattr(record, key) for key in EXTRA_FIELDS if hasattr(record, key)})

        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def client_address(request: Request) -> str:
    """First hop of X-Forwarded-For, falling back to the socket peer."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "unknown"


def two_factor_operation(path: str) -> str | None:
    """Map ``/api/v1/2fa/validate`` to ``validate``."""
    if path.startswith(TWO_FACTOR_PREFIX):
        return path[len(TWO_FACTOR_PREFIX):].strip("/") or None
    return None


def level_for_status(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """Access logging with request ID propagation."""

    def __init__(self, app: ASGIApp, logger_name: str = "chatter.access"):
        super().__init__(app)
        self.logger = logging.getLogger(logger_name)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        token = request_id_var.set(request_id)
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            self._access_log(request, 500, started, request_id=request_id, exc_info=True)
            raise
        finally:
            request_id_var.reset(token)

        response.headers["X-Request-ID"] = request_id
        self._access_log(request, response.status_code, started, request_id=request_id)
        return response

    def _access_log(
        self,
        request: Request,
        status_code: int,
        started: float,
        request_id: str | None = None,
        exc_info: bool = False,
    ) -> None:
        path = request.url.path
        if path in QUIET_PATHS:
            return

        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        extra = {
            "method": request.method,
            "path": path,
            "status_code": status_code,
            "duration_ms": duration_ms,
            "client": client_address(request),
        }
        operation = two_factor_operation(path)
        if operation:
            extra["operation"] = operation
        if request_id:
            extra["request_id"] = request_id

        self.logger.log(
            level_for_status(status_code),
            f"{request.method} {path} {status_code} {duration_ms}ms",
            extra=extra,
            exc_info=exc_info,
        )


def setup_structured_logging(log_level: str = "INFO", json_format: bool = True) -> None:
    """
    Install a single stderr handler on the root logger.

    Args:
        log_level: Logging level name (DEBUG, INFO, WARNING, ERROR)
        json_format: JSON lines when True, plain text otherwise
    """
    handler = logging.StreamHandler()
    handler.addFilter(RequestIdFilter())
    if json_format:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s [%(request_id)s] %(message)s"))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level.upper())
