"""
Error taxonomy for the notification dispatcher and the FastAPI handlers that
turn it into JSON responses.

Every failure the service reports is a NotificationError subclass. The
response body always has a human-readable ``error`` summary and a ``details``
string with the underlying cause:

  ValidationError  400  client fault, raised before any external call
  RenderError      500  PDF generation failed, raised before any dispatch
  DispatchError    500  the email provider rejected or never received the send
  UnknownError     500  anything else
"""

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class NotificationError(Exception):
    """Base class: carries the HTTP status and the response summary."""

    status_code: int = 500
    error: str = "Unknown error"

    def __init__(self, details: str):
        super().__init__(details)
        self.details = details

    def to_content(self) -> dict[str, Any]:
        return {"error": self.error, "details": self.details}


# ---------------------------------------------------------------------------
# Client faults
# ---------------------------------------------------------------------------

class ValidationError(NotificationError):
    status_code = 400
    error = "Invalid request"


class MissingFieldsError(ValidationError):
    error = "Missing required fields"

    def __init__(self, missing: list[str]):
        self.missing = list(missing)
        super().__init__(f"Missing or empty: {', '.join(self.missing)}")


class InvalidEmailError(ValidationError):
    """Raised once with every bad address, not just the first one found."""

    error = "Invalid email format"

    def __init__(self, invalid_recipients: list[str]):
        self.invalid_recipients = list(invalid_recipients)
        super().__init__(
            f"Invalid email address(es): {', '.join(self.invalid_recipients)}"
        )

    def to_content(self) -> dict[str, Any]:
        content = super().to_content()
        content["invalidRecipients"] = self.invalid_recipients
        return content


class InvalidBodyError(ValidationError):
    error = "Invalid request body"


# ---------------------------------------------------------------------------
# Server / dependency faults
# ---------------------------------------------------------------------------

class RenderError(NotificationError):
    error = "Failed to generate PDF"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class DispatchError(NotificationError):
    error = "Email send failed"

    def __init__(self, details: str, provider_error: Optional[dict[str, Any]] = None):
        super().__init__(details)
        self.provider_error = provider_error

    def to_content(self) -> dict[str, Any]:
        content = super().to_content()
        if self.provider_error is not None:
            content["providerError"] = self.provider_error
        return content


class UnknownError(NotificationError):
    error = "Unknown error"


# ---------------------------------------------------------------------------
# FastAPI wiring
# ---------------------------------------------------------------------------

def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers that render NotificationError (and stray exceptions) as JSON."""

    @app.exception_handler(NotificationError)
    async def notification_error_handler(
        request: Request, exc: NotificationError
    ) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.error}: {exc.details}")
        else:
            logger.warning(f"{request.method} {request.url.path} rejected: {exc.error}: {exc.details}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_content())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "Unhandled exception while processing %s %s", request.method, request.url.path
        )
        return JSONResponse(status_code=500, content=UnknownError(str(exc)).to_content())
