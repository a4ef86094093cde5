"""
TaskDeps — Error Responses
============================
Maps the engine's exception taxonomy onto HTTP status codes.

    ValidationError         -> 422
    NotFoundError           -> 404
    AnalysisTimeoutError    -> 504
    AnalysisCancelledError  -> 503
    anything else           -> 500
"""

from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse

from taskdeps.core.exceptions import (
    AnalysisCancelledError,
    AnalysisTimeoutError,
    NotFoundError,
    TaskDepsError,
    ValidationError,
)
from taskdeps.core.logging import get_logger
from taskdeps.core.middleware import correlation_id_ctx

logger = get_logger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[TaskDepsError], int], ...] = (
    (ValidationError, 422),
    (NotFoundError, 404),
    (AnalysisTimeoutError, 504),
    (AnalysisCancelledError, 503),
)


def status_for(exc: TaskDepsError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500


async def taskdeps_error_handler(request: Request, exc: TaskDepsError) -> JSONResponse:
    status_code = status_for(exc)
    body = exc.to_dict()
    body["correlation_id"] = exc.correlation_id or correlation_id_ctx.get(None)
    log = logger.warning if status_code < 500 else logger.error
    log(
        "request.failed",
        error_code=exc.error_code,
        status_code=status_code,
        message=str(exc),
    )
    return JSONResponse(status_code=status_code, content={"detail": body})
