"""
TaskDeps — Request Context Middleware
=======================================
Gives every HTTP request a correlation ID and binds request metadata into
structlog's context variables so engine log entries can be traced back to
the call that caused them.

The correlation ID is taken from the configured header when the client
sends one, otherwise a fresh UUID v4 is generated.  It is echoed back on
the response.
"""

from __future__ import annotations

import time
import uuid
from contextvars import ContextVar

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from taskdeps.core.config import get_settings

correlation_id_ctx: ContextVar[str | None] = ContextVar(
    "correlation_id", default=None
)

logger = structlog.get_logger("taskdeps.core.middleware")


class CorrelationMiddleware(BaseHTTPMiddleware):
    """Assign a correlation ID and log one ``request.completed`` entry per call."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        header_name = get_settings().correlation_id_header
        cid = request.headers.get(header_name) or str(uuid.uuid4())

        token = correlation_id_ctx.set(cid)
        started = time.perf_counter()
        with structlog.contextvars.bound_contextvars(
            http_method=request.method, http_path=request.url.path
        ):
            try:
                response = await call_next(request)
                response.headers[header_name] = cid
                logger.info(
                    "request.completed",
                    status_code=response.status_code,
                    duration_ms=round((time.perf_counter() - started) * 1000, 2),
                )
                return response
            finally:
                correlation_id_ctx.reset(token)
