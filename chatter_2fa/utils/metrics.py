"""
Prometheus Metrics Module

Counters for 2FA outcomes, exposed at /metrics for Prometheus scraping.
"""

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Info, generate_latest
from starlette.responses import Response

APP_INFO = Info("chatter_2fa_app", "Chatter 2FA service information")


def set_app_info(version: str, environment: str) -> None:
    """Set application info labels."""
    APP_INFO.info({"version": version, "environment": environment})


# operation: setup | verify | validate | disable
# result: success | invalid | enabled | backup_code | not_enabled | not_set_up
TWO_FACTOR_ATTEMPTS_TOTAL = Counter(
    "chatter_2fa_attempts_total",
    "Two-factor operations by outcome",
    ["operation", "result"],
)

TWO_FACTOR_WRITE_CONFLICTS_TOTAL = Counter(
    "chatter_2fa_write_conflicts_total",
    "Conditional 2FA record writes that lost a race",
    ["operation"],
)


def record_two_factor_attempt(operation: str, result: str) -> None:
    """Count one 2FA operation outcome."""
    TWO_FACTOR_ATTEMPTS_TOTAL.labels(operation=operation, result=result).inc()


def record_write_conflict(operation: str) -> None:
    TWO_FACTOR_WRITE_CONFLICTS_TOTAL.labels(operation=operation).inc()


def metrics_response() -> Response:
    """Render all registered metrics in the Prometheus text format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
