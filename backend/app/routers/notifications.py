"""
Completion-notification endpoints.

Endpoints:
  POST /send-completion-email      caller-supplied HTML to a recipient list,
                                    optionally with the HTML attached as a PDF
  POST /send-project-completion    fixed admin + client "project completed" emails

Bodies are read as raw JSON and validated by app.services.request_validator so
that missing or malformed fields come back as 400 {"error", "details"}
instead of FastAPI's default 422. Every failure is a NotificationError and is
rendered by the handlers in app.errors.

CORS headers and OPTIONS preflights are handled by PermissiveCORSMiddleware.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from app.errors import InvalidBodyError, NotificationError, UnknownError
from app.dependencies import get_dispatcher
from app.services.notification_dispatcher import NotificationDispatcher
from app.services.request_validator import (
    parse_notification_request,
    parse_project_completion,
)

logger = logging.getLogger(__name__)

router = APIRouter()


async def _read_json(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        raise InvalidBodyError("Request body is not valid JSON")


@router.post(
    "/send-completion-email",
    responses={
        200: {
            "description": "Email accepted by the provider",
            "content": {
                "application/json": {
                    "example": {
                        "success": True,
                        "emailSent": True,
                        "pdfAttached": True,
                        "emailId": "49a3999c-0ce1-4ea6-ab68-afcd6dc2e794",
                    }
                }
            },
        },
        400: {"description": "Missing required fields, invalid email format or malformed body"},
        500: {"description": "Failed to generate PDF, email send failed or unknown error"},
    },
)
async def send_completion_email(
    request: Request,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """
    Send a completion notification.

    Body: {recipients: "a@x.com, b@y.com" | [..], subject, html, generatePdf?}

    When generatePdf is true the html is rendered to an A4 PDF and attached
    as "<subject>.pdf"; if rendering fails nothing is sent.
    """
    try:
        notification = parse_notification_request(await _read_json(request))
        result = await dispatcher.send_completion_email(notification)
    except NotificationError:
        raise
    except Exception as e:
        logger.exception("Unexpected error while sending completion email")
        raise UnknownError(str(e) or type(e).__name__)

    return JSONResponse(content=result.model_dump(by_alias=True, exclude_none=True))


@router.post("/send-project-completion")
async def send_project_completion(
    request: Request,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """
    Send the "project completed" pair of emails.

    Body: {name, email, projectName}. The admin copy goes to ADMIN_EMAIL
    (skipped when unset), then the client gets a congratulation email.
    """
    try:
        payload = parse_project_completion(await _read_json(request))
        result = await dispatcher.send_project_completion(payload)
    except NotificationError:
        raise
    except Exception as e:
        logger.exception("Unexpected error while sending project completion emails")
        raise UnknownError(str(e) or type(e).__name__)

    return JSONResponse(content=result.model_dump(by_alias=True, exclude_none=True))
