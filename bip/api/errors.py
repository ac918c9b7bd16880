"""
Translation of job queue errors into HTTP responses.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from bip.errors import (
    DuplicateResultError,
    InvalidNameError,
    InvalidStateError,
    InvalidTransitionError,
    JobAlreadyExistsError,
    JobError,
    JobNotFoundError,
    StorageError,
)
from bip.observability.metrics import get_metrics

logger = logging.getLogger(__name__)

# Error class -> (HTTP status, error kind)
ERROR_RESPONSES: dict[type[JobError], tuple[int, str]] = {
    JobNotFoundError: (status.HTTP_404_NOT_FOUND, "not_found"),
    JobAlreadyExistsError: (status.HTTP_409_CONFLICT, "already_exists"),
    InvalidTransitionError: (status.HTTP_409_CONFLICT, "invalid_transition"),
    DuplicateResultError: (status.HTTP_409_CONFLICT, "duplicate_result"),
    InvalidStateError: (status.HTTP_403_FORBIDDEN, "invalid_state"),
    InvalidNameError: (status.HTTP_400_BAD_REQUEST, "invalid_name"),
    StorageError: (status.HTTP_500_INTERNAL_SERVER_ERROR, "storage_error"),
}


def error_response(exc: JobError) -> tuple[int, str]:
    """Look up the HTTP status and error kind for a job error."""
    for error_type in type(exc).__mro__:
        if error_type in ERROR_RESPONSES:
            return ERROR_RESPONSES[error_type]
    return status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error"


def register_error_handlers(app: FastAPI) -> None:
    """Install the exception handlers on the application."""

    @app.exception_handler(JobError)
    async def job_error_handler(request: Request, exc: JobError) -> JSONResponse:
        status_code, kind = error_response(exc)
        if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            route = request.scope.get("route")
            get_metrics().record_storage_error(getattr(route, "name", "unknown"))
            logger.error(
                "Storage failure",
                exc_info=exc,
                extra={"path": request.url.path, "method": request.method},
            )
            # Server-side details stay in the logs
            detail = "Internal storage error"
        else:
            logger.warning(
                "Job request rejected",
                extra={"path": request.url.path, "error": kind, "detail": str(exc)},
            )
            detail = str(exc)
        return JSONResponse(
            status_code=status_code,
            content={"error": kind, "detail": detail},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exc_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        logger.warning(
            "HTTP error",
            extra={"path": request.url.path, "status": exc.status_code, "detail": exc.detail},
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": "http_error", "detail": str(exc.detail)},
            headers=exc.headers,
        )
