"""
Notification dispatch: the render-then-send sequence behind both endpoints.

Steps run strictly in order and nothing is retried. A render failure stops
the request before the provider is called, so no email ever goes out
without the PDF it promised. All recipients share one provider call, so a
send either reaches all of them or fails as a whole.
"""

import logging
from html import escape
from typing import Optional

from app.models.notification import (
    NotificationRequest,
    OutboundEmail,
    ProjectCompletionPayload,
    ProjectCompletionResponse,
    SendEmailResponse,
)
from app.services.email_client import ResendClient
from app.services.pdf_renderer import PdfRenderer, build_attachment

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    def __init__(
        self,
        email_client: ResendClient,
        sender: str,
        renderer: Optional[PdfRenderer] = None,
        admin_email: str = "",
    ):
        self.email_client = email_client
        self.sender = sender
        self.renderer = renderer
        self.admin_email = admin_email

    async def send_completion_email(self, request: NotificationRequest) -> SendEmailResponse:
        """
        Send the caller's HTML, optionally with the same HTML rendered as a PDF.

        Raises:
            RenderError:   PDF generation failed (provider not called)
            DispatchError: the provider rejected the send or was unreachable
        """
        logger.info(
            f"Sending completion email to {len(request.recipients)} recipient(s), "
            f"generatePdf={request.generate_pdf}"
        )

        attachments = []
        if request.generate_pdf:
            if self.renderer is None:
                raise RuntimeError("PDF requested but no renderer is configured")
            pdf_bytes = await self.renderer.render(request.html_body)
            attachments.append(build_attachment(request.subject, pdf_bytes))

        email = OutboundEmail(
            sender=self.sender,
            to=request.recipients,
            subject=request.subject,
            html=request.html_body,
            attachments=attachments,
        )
        result = (await self.email_client.send_email(email)).raise_for_error()

        return SendEmailResponse(
            pdf_attached=bool(attachments),
            email_id=result.provider_message_id,
        )

    async def send_project_completion(
        self, payload: ProjectCompletionPayload
    ) -> ProjectCompletionResponse:
        """
        Notify the admin (when ADMIN_EMAIL is set), then congratulate the client.

        The client email is not attempted if the admin send fails.
        """
        project = escape(payload.project_name)
        name = escape(payload.name)
        client_email = escape(payload.email)

        admin_id = None
        if self.admin_email:
            admin = OutboundEmail(
                sender=self.sender,
                to=[self.admin_email],
                subject=f"Project Completed: {payload.project_name}",
                html=(
                    "<h2>Project Completed</h2>\n"
                    f"<p><strong>Project:</strong> {project}</p>\n"
                    f"<p><strong>Client Name:</strong> {name}</p>\n"
                    f"<p><strong>Client Email:</strong> {client_email}</p>\n"
                ),
            )
            admin_id = (await self.email_client.send_email(admin)).raise_for_error().provider_message_id
        else:
            logger.info("ADMIN_EMAIL not configured; skipping admin completion email")

        client = OutboundEmail(
            sender=self.sender,
            to=[payload.email],
            subject=f'Your Project "{payload.project_name}" is Completed',
            html=(
                "<h2>Congratulations \U0001F389</h2>\n"
                f"<p>Your project <strong>{project}</strong> has been successfully completed.</p>\n"
                "<p>Thank you for working with us!</p>\n"
            ),
        )
        client_id = (await self.email_client.send_email(client)).raise_for_error().provider_message_id

        return ProjectCompletionResponse(admin_email_id=admin_id, client_email_id=client_id)
