"""Cross-cutting service plumbing: JSON logging with request context, health probes."""

from .health import HealthStatus, ServiceHealth
from .logging_config import (
    RequestLoggingMiddleware,
    get_logger,
    request_id_var,
    set_request_context,
    setup_logging,
    user_id_var,
)

__all__ = [
    "HealthStatus",
    "ServiceHealth",
    "RequestLoggingMiddleware",
    "get_logger",
    "request_id_var",
    "set_request_context",
    "setup_logging",
    "user_id_var",
]
