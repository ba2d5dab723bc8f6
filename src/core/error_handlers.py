"""Exception handlers translating errors into JSON responses.

Routes and managers raise exceptions from core.exceptions; the handlers here
are the only place that turns them into HTTP status codes.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

import config
from core.exceptions import (
    AuthenticationError,
    UploadError,
    ValidationError,
    VoiceItError,
    format_validation_errors,
)

logger = logging.getLogger(__name__)


async def handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": exc.message, "errors": exc.errors},
    )


async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": "Validation failed",
            "errors": format_validation_errors(exc.errors()),
        },
    )


async def handle_voiceit_error(request: Request, exc: VoiceItError) -> JSONResponse:
    headers = None
    if isinstance(exc, AuthenticationError):
        headers = {"WWW-Authenticate": "Bearer"}
    if isinstance(exc, UploadError):
        logger.error("Upload failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=exc.status_code, content={"detail": exc.message}, headers=headers
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    content = {"detail": "Internal server error"}
    if config.is_development():
        content["error"] = str(exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the application."""
    app.add_exception_handler(ValidationError, handle_validation_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(VoiceItError, handle_voiceit_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
