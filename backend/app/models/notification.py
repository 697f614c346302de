"""
Pydantic models for the completion-notification endpoints.

Models:
  NotificationPayload          raw POST body for /send-completion-email
  NotificationRequest          validated, request-scoped notification
  ProjectCompletionPayload     raw POST body for /send-project-completion
  RenderedAttachment           PDF attachment, base64-encoded for the provider
  OutboundEmail                one message handed to the email provider
  DispatchResult               what the provider said about a send
  SendEmailResponse            200 body for /send-completion-email
  ProjectCompletionResponse    200 body for /send-project-completion
"""

from typing import Any, Optional, Union

from pydantic import BaseModel, Field, field_validator

from app.errors import DispatchError


# ---------------------------------------------------------------------------
# Inbound bodies
# ---------------------------------------------------------------------------

class NotificationPayload(BaseModel):
    """
    Body of POST /api/send-completion-email as the caller sent it.

    Every field is optional here so that missing fields are reported by the
    validator as a 400 naming all of them, rather than as FastAPI's 422.
    recipients may be a comma-delimited string or a list of strings.
    """
    model_config = {"extra": "ignore", "populate_by_name": True}

    recipients: Optional[Union[str, list[str]]] = None
    subject: Optional[str] = None
    html: Optional[str] = None
    generate_pdf: Optional[bool] = Field(False, alias="generatePdf")

    @field_validator("generate_pdf", mode="before")
    @classmethod
    def _null_means_no_pdf(cls, value):
        return False if value is None else value


class NotificationRequest(BaseModel):
    """A validated notification: recipients split, trimmed and syntax-checked."""

    recipients: list[str]
    subject: str
    html_body: str
    generate_pdf: bool = False


class ProjectCompletionPayload(BaseModel):
    """Body of POST /api/send-project-completion."""
    model_config = {"extra": "ignore", "populate_by_name": True}

    name: Optional[str] = None
    email: Optional[str] = None
    project_name: Optional[str] = Field(None, alias="projectName")


# ---------------------------------------------------------------------------
# Outbound email
# ---------------------------------------------------------------------------

class RenderedAttachment(BaseModel):
    filename: str
    content: str            # base64 text, as the provider expects it


class OutboundEmail(BaseModel):
    sender: str
    to: list[str]
    subject: str
    html: str
    attachments: list[RenderedAttachment] = []

    def to_provider_payload(self) -> dict[str, Any]:
        """Resend's /emails body (note ``from`` is a Python keyword, hence ``sender``)."""
        payload: dict[str, Any] = {
            "from": self.sender,
            "to": self.to,
            "subject": self.subject,
            "html": self.html,
        }
        if self.attachments:
            payload["attachments"] = [a.model_dump() for a in self.attachments]
        return payload


class DispatchResult(BaseModel):
    """
    Outcome of a single provider send.

    The provider's own success flag decides the outcome, not the transport
    status: a 200 whose body carries an error is still a failure.
    """

    success: bool
    provider_message_id: Optional[str] = None
    error: Optional[dict[str, Any]] = None

    def raise_for_error(self) -> "DispatchResult":
        """Raise DispatchError if the send failed; return self otherwise."""
        if self.success:
            return self
        error = self.error or {}
        message = error.get("message") or error.get("name") or "Email provider reported a failure"
        raise DispatchError(str(message), provider_error=error)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class SendEmailResponse(BaseModel):
    model_config = {"populate_by_name": True}

    success: bool = True
    email_sent: bool = Field(True, serialization_alias="emailSent")
    pdf_attached: bool = Field(False, serialization_alias="pdfAttached")
    email_id: Optional[str] = Field(None, serialization_alias="emailId")


class ProjectCompletionResponse(BaseModel):
    model_config = {"populate_by_name": True}

    success: bool = True
    admin_email_id: Optional[str] = Field(None, serialization_alias="adminEmailId")
    client_email_id: Optional[str] = Field(None, serialization_alias="clientEmailId")
