"""Per-request context for access checks.

Every request gets a request id (the caller's ``X-Request-ID`` when it is
usable, a fresh one otherwise) and, when the caller propagates one, a trace id.
Both end up in every log line of the request and in audit records.
"""

import re
import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from eduaccess.core.context import clear_context, set_request_id, set_trace_id
from eduaccess.core.logging import get_logger


logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
TRACE_ID_HEADER = "X-Trace-ID"

# Caller-supplied ids are written to logs and the audit table
_SAFE_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")
_TRACEPARENT = re.compile(r"^[0-9a-f]{2}-([0-9a-f]{32})-[0-9a-f]{16}-[0-9a-f]{2}$")


def extract_traceparent(traceparent: str | None) -> str | None:
    """Trace id from a W3C ``traceparent`` header, or None if malformed."""
    if not traceparent:
        return None
    match = _TRACEPARENT.match(traceparent.strip().lower())
    return match.group(1) if match else None


def _caller_id(value: str | None) -> str | None:
    return value if value and _SAFE_ID.match(value) else None


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind request and trace ids, log one line per request, echo the id."""

    def __init__(
        self,
        app: ASGIApp,
        log_requests: bool = True,
        exclude_paths: list[str] | None = None,
    ) -> None:
        super().__init__(app)
        self.log_requests = log_requests
        self.exclude_paths = tuple(exclude_paths or ["/health"])

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        headers = request.headers
        request_id = set_request_id(_caller_id(headers.get(REQUEST_ID_HEADER)))
        set_trace_id(
            _caller_id(headers.get(TRACE_ID_HEADER))
            or extract_traceparent(headers.get("traceparent"))
        )
        request.state.request_id = request_id

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "request_failed",
                method=request.method,
                path=request.url.path,
                duration_ms=self._elapsed_ms(started),
            )
            raise
        else:
            self._log_completed(request, response, started)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            clear_context()

    def _log_completed(
        self, request: Request, response: Response, started: float
    ) -> None:
        if not self.log_requests or request.url.path.startswith(self.exclude_paths):
            return
        # 4xx, including 403 denials, logs at info
        level = logger.warning if response.status_code >= 500 else logger.info
        level(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=self._elapsed_ms(started),
        )

    @staticmethod
    def _elapsed_ms(started: float) -> float:
        return round((time.perf_counter() - started) * 1000, 2)


__all__ = ["RequestContextMiddleware", "extract_traceparent"]
