"""
Trace ID middleware.

Takes X-Trace-Id from the request (RQ jobs forward theirs) or generates one,
binds it into the structlog context for every log line of the request and
echoes it back on the response.
"""

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger()

# Health probes are not logged
_QUIET_PATHS = frozenset({"/health"})


class TraceMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        trace_id = request.headers.get("X-Trace-Id") or str(uuid.uuid4())
        structlog.contextvars.bind_contextvars(trace_id=trace_id)
        started = time.perf_counter()

        try:
            response = await call_next(request)
            response.headers["X-Trace-Id"] = trace_id

            if request.url.path not in _QUIET_PATHS:
                logger.info(
                    "request_completed",
                    method=request.method,
                    path=request.url.path,
                    status_code=response.status_code,
                    duration_ms=round((time.perf_counter() - started) * 1000, 1),
                )
            return response
        finally:
            structlog.contextvars.unbind_contextvars("trace_id")
