"""
Mapping of scheduling errors to HTTP responses.

Services raise typed SchedulingError subclasses; this module is the only
place that turns them into status codes.
"""

import logging
from typing import Any, Dict

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from core.exceptions import (
    AuthorizationError,
    ConflictError,
    DeadlineError,
    InvalidTransitionError,
    NotFoundError,
    SchedulingError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def _error_body(exc: SchedulingError, error_type: str) -> Dict[str, Any]:
    body: Dict[str, Any] = {"detail": exc.message, "type": error_type}
    if exc.context:
        body["context"] = {key: str(value) for key, value in exc.context.items()}
    return body


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    logger.warning(f"ValidationError: {exc.message}")
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=_error_body(exc, "validation_error"))


async def not_found_error_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content=_error_body(exc, "not_found"))


async def conflict_error_handler(request: Request, exc: ConflictError) -> JSONResponse:
    body = _error_body(exc, "conflict")
    body["conflicts"] = [conflict.to_dict() for conflict in exc.conflicts]
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=body)


async def invalid_transition_error_handler(request: Request, exc: InvalidTransitionError) -> JSONResponse:
    body = _error_body(exc, "invalid_transition")
    body["current_status"] = exc.current_status
    body["requested_status"] = exc.requested_status
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=body)


async def authorization_error_handler(request: Request, exc: AuthorizationError) -> JSONResponse:
    logger.warning(f"AuthorizationError: {exc.message}")
    return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content=_error_body(exc, "authorization_error"))


async def deadline_error_handler(request: Request, exc: DeadlineError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "error": "deadline_passed",
            "detail": exc.message,
            "deadline_hours": exc.deadline_hours,
        },
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions globally."""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error", "type": "internal_error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ValidationError, validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(NotFoundError, not_found_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(ConflictError, conflict_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(InvalidTransitionError, invalid_transition_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(AuthorizationError, authorization_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(DeadlineError, deadline_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, global_exception_handler)
