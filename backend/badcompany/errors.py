"""Domain errors raised by the newsletter services and rendered by the API."""
from typing import Any, Optional

from fastapi import Request
from fastapi.responses import JSONResponse


class NewsletterError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(NewsletterError):
    status_code = 400


class NoRecipientsError(ValidationError):
    """The resolved audience is empty; nothing was created."""


class AuthorizationError(NewsletterError):
    status_code = 403


class NotFoundError(NewsletterError):
    status_code = 404


class ConflictError(NewsletterError):
    status_code = 409


class InvalidRecipientError(NewsletterError):
    """A subscriber address cannot be used as a mail recipient."""

    status_code = 422


def error_body(message: str, details: Optional[Any] = None) -> dict:
    body: dict = {"error": message}
    if details is not None:
        body["details"] = details
    return body


async def newsletter_error_handler(request: Request, exc: NewsletterError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.details))
