"""Relay failures and the JSON bodies they turn into."""

from __future__ import annotations

from typing import Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse

from .models import ErrorResponse
from .validation import ValidationIssue

GENERIC_ERROR = "An unexpected error occurred. Please try again."


class RelayError(Exception):
    """Base class for errors rendered to the client as ``{"error": ...}``."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = GENERIC_ERROR

    def __init__(self, message: Optional[str] = None, *, status_code: Optional[int] = None) -> None:
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class BadRequest(RelayError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, issue: ValidationIssue) -> None:
        self.issue = issue
        super().__init__(issue.message)


class ServiceUnavailable(RelayError):
    """No upstream credential is configured."""

    default_message = "Server configuration error."


class UpstreamUnreachable(RelayError):
    """The upstream call did not complete."""


class UpstreamError(RelayError):
    """Upstream answered, but not with a usable success response."""

    default_message = "AI service error"


async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.message).model_dump(),
    )
