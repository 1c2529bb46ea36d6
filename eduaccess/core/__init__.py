# Core infrastructure
from eduaccess.core.context import (
    clear_context,
    get_context,
    get_request_id,
    get_subject_id,
    get_trace_id,
    set_request_id,
    set_subject_id,
    set_trace_id,
)
from eduaccess.core.logging import configure_structlog, get_logger
from eduaccess.core.middleware import RequestContextMiddleware


__all__ = [
    "RequestContextMiddleware",
    "clear_context",
    "configure_structlog",
    "get_context",
    "get_logger",
    "get_request_id",
    "get_subject_id",
    "get_trace_id",
    "set_request_id",
    "set_subject_id",
    "set_trace_id",
]
