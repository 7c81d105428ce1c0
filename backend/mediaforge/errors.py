from __future__ import annotations
"""Error taxonomy for the job lifecycle and its HTTP mapping.

Every error carries the HTTP status it maps to and a public message that is
safe to show to clients. Internal detail goes to the log, never the response.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

NOT_FOUND_OR_FORBIDDEN_MESSAGE = (
    "History item not found or you do not have permission to view it."
)


class MediaForgeError(Exception):
    """Base class for all errors surfaced at an HTTP boundary."""

    status_code: int = 500
    public_message: str = "Internal server error"
    expose_message: bool = True

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.public_message)
        self.message = message or self.public_message


class ValidationError(MediaForgeError):
    """Malformed request or callback body. No state was mutated."""

    status_code = 400
    public_message = "Invalid request data"


class UnauthorizedError(MediaForgeError):
    status_code = 401
    public_message = "Unauthorized"


class NotFoundOrForbidden(MediaForgeError):
    """Record absent or caller is not its owner.

    The two cases share one public message so existence never leaks.
    """

    status_code = 404
    public_message = NOT_FOUND_OR_FORBIDDEN_MESSAGE

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message)
        # the detailed message stays internal
        self.message = NOT_FOUND_OR_FORBIDDEN_MESSAGE
        self.detail = message


class RecordNotFound(NotFoundOrForbidden):
    pass


class RecordForbidden(NotFoundOrForbidden):
    pass


class ConflictError(MediaForgeError):
    """Duplicate job id on insert."""

    status_code = 409
    public_message = "Job already exists"


class StorageError(MediaForgeError):
    """I/O failure against the record store or the artifact store."""

    status_code = 500
    public_message = "Storage failure"
    expose_message = False


class UpstreamError(MediaForgeError):
    """The external generator rejected the job or reported a failure."""

    status_code = 502
    public_message = "Generation service failure"


class ConfigurationError(MediaForgeError):
    """Missing required deployment configuration."""

    status_code = 500
    public_message = "Server configuration error"


class InvalidTransition(ValueError):
    """A status transition that the job state machine does not allow."""


async def _handle_mediaforge_error(request: Request, exc: MediaForgeError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
    else:
        logger.info("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
    message = exc.message if exc.expose_message else exc.public_message
    return JSONResponse(status_code=exc.status_code, content={"error": message})


async def _handle_request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    logger.info("Invalid request on %s %s: %s", request.method, request.url.path, exc.errors())
    details = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"error": ValidationError.public_message, "details": details},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Map the error taxonomy onto JSON responses."""
    app.add_exception_handler(MediaForgeError, _handle_mediaforge_error)
    app.add_exception_handler(RequestValidationError, _handle_request_validation_error)
