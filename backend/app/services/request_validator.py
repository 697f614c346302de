"""
Inbound payload validation for the completion-notification endpoints.

Turns a raw JSON body into a NotificationRequest, or raises a ValidationError
subclass before anything external is touched. Invalid addresses are collected
and reported together so the caller can fix every one of them in a single
round-trip.

Public API:
  split_recipients(value) -> list[str]
  find_invalid_emails(addresses) -> list[str]
  parse_notification_request(body) -> NotificationRequest
  parse_project_completion(body) -> ProjectCompletionPayload
"""

import re
from typing import Any, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from app.errors import InvalidBodyError, InvalidEmailError, MissingFieldsError
from app.models.notification import (
    NotificationPayload,
    NotificationRequest,
    ProjectCompletionPayload,
)


# local@domain.tld with no whitespace and a single "@"
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def split_recipients(value: Union[str, list[str], None]) -> list[str]:
    """
    Normalize recipients into a flat list of trimmed, non-empty addresses.

    Accepts "a@x.com, b@y.com" as well as ["a@x.com", "b@y.com"]; list items
    are themselves split on commas so a mixed form also works.
    """
    if value is None:
        return []
    parts = [value] if isinstance(value, str) else list(value)

    recipients: list[str] = []
    for part in parts:
        for address in part.split(","):
            address = address.strip()
            if address:
                recipients.append(address)
    return recipients


def is_valid_email(address: str) -> bool:
    return bool(EMAIL_PATTERN.match(address))


def find_invalid_emails(addresses: list[str]) -> list[str]:
    """Return every address that fails the syntax check, in input order."""
    return [a for a in addresses if not is_valid_email(a)]


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def _load_payload(model, body: Any):
    if not isinstance(body, dict):
        raise InvalidBodyError("Request body must be a JSON object")
    try:
        return model.model_validate(body)
    except PydanticValidationError as e:
        problems = []
        for err in e.errors():
            location = ".".join(str(loc) for loc in err.get("loc", ()))
            problems.append(f"{location}: {err.get('msg', 'invalid value')}")
        raise InvalidBodyError("; ".join(problems) or "Invalid request body")


def parse_notification_request(body: Any) -> NotificationRequest:
    """
    Validate the /send-completion-email body.

    Raises:
        InvalidBodyError:   body is not an object or a field has the wrong type
        MissingFieldsError: recipients, subject or html is absent or empty
        InvalidEmailError:  one or more recipients fail the syntax check
    """
    payload = _load_payload(NotificationPayload, body)
    recipients = split_recipients(payload.recipients)

    missing = []
    if not recipients:
        missing.append("recipients")
    if _is_blank(payload.subject):
        missing.append("subject")
    if _is_blank(payload.html):
        missing.append("html")
    if missing:
        raise MissingFieldsError(missing)

    invalid = find_invalid_emails(recipients)
    if invalid:
        raise InvalidEmailError(invalid)

    return NotificationRequest(
        recipients=recipients,
        subject=payload.subject,
        html_body=payload.html,
        generate_pdf=payload.generate_pdf,
    )


def parse_project_completion(body: Any) -> ProjectCompletionPayload:
    """Validate the /send-project-completion body (name, email, projectName)."""
    payload = _load_payload(ProjectCompletionPayload, body)

    missing = [
        field
        for field, value in (
            ("name", payload.name),
            ("email", payload.email),
            ("projectName", payload.project_name),
        )
        if _is_blank(value)
    ]
    if missing:
        raise MissingFieldsError(missing)

    email = payload.email.strip()
    if not is_valid_email(email):
        raise InvalidEmailError([email])

    return ProjectCompletionPayload(
        name=payload.name.strip(),
        email=email,
        projectName=payload.project_name.strip(),
    )
