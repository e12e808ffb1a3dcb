"""Paste errors and the FastAPI handlers that render them.

Every failure leaves the API in the same envelope as a success:
``{"success": false, "message": ..., "payload": null}``.
"""

import logging
from enum import Enum
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    PASSWORD_INCORRECT = "password_incorrect"
    ALREADY_EXISTS = "already_exists"
    NOT_FOUND = "not_found"
    VALUE_ERROR = "value_error"
    UNAUTHORIZED = "unauthorized"
    USER_EXISTS = "user_exists"
    INVALID_CREDENTIALS = "invalid_credentials"
    RATE_LIMITED = "rate_limited"
    OTHER = "other"


_RESPONSES = {
    ErrorKind.PASSWORD_INCORRECT: (status.HTTP_400_BAD_REQUEST, "The given password is invalid."),
    ErrorKind.ALREADY_EXISTS: (status.HTTP_400_BAD_REQUEST, "A paste with this URL already exists."),
    ErrorKind.NOT_FOUND: (status.HTTP_404_NOT_FOUND, "No paste with this URL has been found."),
    ErrorKind.VALUE_ERROR: (status.HTTP_400_BAD_REQUEST, "One of the field values given is invalid."),
    ErrorKind.UNAUTHORIZED: (status.HTTP_401_UNAUTHORIZED, "You must be logged in to do this."),
    ErrorKind.USER_EXISTS: (status.HTTP_400_BAD_REQUEST, "A user with this username already exists."),
    ErrorKind.INVALID_CREDENTIALS: (status.HTTP_401_UNAUTHORIZED, "Invalid credentials"),
    ErrorKind.RATE_LIMITED: (status.HTTP_429_TOO_MANY_REQUESTS, "Rate limit exceeded"),
    ErrorKind.OTHER: (
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unspecified error occured with the paste manager",
    ),
}


_REFUSALS = (ErrorKind.PASSWORD_INCORRECT, ErrorKind.UNAUTHORIZED, ErrorKind.INVALID_CREDENTIALS)


class PasteError(Exception):
    """Raised by the paste manager and handlers; carries one ErrorKind."""

    def __init__(self, kind: ErrorKind, detail: Optional[str] = None):
        self.kind = kind
        self.detail = detail
        super().__init__(detail or _RESPONSES[kind][1])

    @property
    def http_status(self) -> int:
        return _RESPONSES[self.kind][0]

    @property
    def message(self) -> str:
        return _RESPONSES[self.kind][1]

    def to_response(self) -> dict:
        return {"success": False, "message": self.message, "payload": None}


def error_response(kind: ErrorKind) -> ORJSONResponse:
    exc = PasteError(kind)
    return ORJSONResponse(status_code=exc.http_status, content=exc.to_response())


def register_error_handlers(app: FastAPI) -> None:
    """Register paste, validation, routing and catch-all handlers on the app."""

    @app.exception_handler(PasteError)
    async def paste_error_handler(request: Request, exc: PasteError):
        if exc.kind in _REFUSALS:
            logger.warning(
                f"Refused {request.method} {request.url.path}",
                extra={"error_code": exc.kind.value},
            )
        elif exc.kind == ErrorKind.OTHER:
            logger.error(
                f"Paste manager failure on {request.url.path}: {exc.detail}",
                extra={"error_code": exc.kind.value},
            )
        return ORJSONResponse(status_code=exc.http_status, content=exc.to_response())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.info(f"Validation error on {request.url.path}: {exc.errors()}")
        return error_response(ErrorKind.VALUE_ERROR)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            return ORJSONResponse(
                status_code=status.HTTP_404_NOT_FOUND,
                content={"success": False, "message": "Path does not exist", "payload": 404},
            )
        return ORJSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": str(exc.detail), "payload": None},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
        return error_response(ErrorKind.OTHER)
