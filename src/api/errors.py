"""
Exception handlers - map the domain error taxonomy onto HTTP responses.

Every onboarding failure returns control to the client with a message;
none of them is fatal to the process.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from src.domain.exceptions import (
    ConflictError,
    DependencyError,
    IntegrityError,
    OnboardingAlreadyCompleted,
    OnboardingError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# First match wins, so subclasses come before their bases
_STATUS_BY_ERROR: tuple[tuple[type[OnboardingError], int], ...] = (
    (OnboardingAlreadyCompleted, status.HTTP_409_CONFLICT),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ConflictError, status.HTTP_409_CONFLICT),
    (DependencyError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (IntegrityError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def status_for(exc: OnboardingError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def onboarding_error_handler(request: Request, exc: OnboardingError) -> JSONResponse:
    """Render an OnboardingError as ErrorResponse."""
    status_code = status_for(exc)
    if status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error": exc.code},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(OnboardingError, onboarding_error_handler)
