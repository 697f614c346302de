"""
Unit tests for NotificationDispatcher (render-then-send sequencing).
"""

import os
from unittest.mock import AsyncMock, MagicMock

import pytest

os.environ.setdefault("RESEND_API_KEY", "re_test_key")

from app.errors import DispatchError, RenderError
from app.models.notification import DispatchResult, NotificationRequest
from app.services.notification_dispatcher import NotificationDispatcher

VALID_PDF = b"%PDF-1.7 test"


def _request(**overrides) -> NotificationRequest:
    fields = {
        "recipients": ["a@x.com"],
        "subject": "Done",
        "html_body": "<p>hi</p>",
        "generate_pdf": False,
    }
    fields.update(overrides)
    return NotificationRequest(**fields)


def _dispatcher(result=None, renderer=None) -> NotificationDispatcher:
    email_client = MagicMock()
    email_client.send_email = AsyncMock(
        return_value=result or DispatchResult(success=True, provider_message_id="msg_1")
    )
    return NotificationDispatcher(
        email_client=email_client,
        sender="noreply@example.com",
        renderer=renderer,
    )


class TestSendCompletionEmail:
    @pytest.mark.asyncio
    async def test_without_pdf_does_not_render(self):
        renderer = MagicMock()
        renderer.render = AsyncMock(return_value=VALID_PDF)
        dispatcher = _dispatcher(renderer=renderer)

        response = await dispatcher.send_completion_email(_request())

        renderer.render.assert_not_awaited()
        assert response.pdf_attached is False
        assert response.email_id == "msg_1"
        email = dispatcher.email_client.send_email.await_args.args[0]
        assert email.sender == "noreply@example.com"
        assert email.attachments == []

    @pytest.mark.asyncio
    async def test_with_pdf_renders_caller_html(self):
        renderer = MagicMock()
        renderer.render = AsyncMock(return_value=VALID_PDF)
        dispatcher = _dispatcher(renderer=renderer)

        response = await dispatcher.send_completion_email(_request(generate_pdf=True))

        renderer.render.assert_awaited_once_with("<p>hi</p>")
        assert response.pdf_attached is True
        email = dispatcher.email_client.send_email.await_args.args[0]
        assert email.attachments[0].filename == "Done.pdf"

    @pytest.mark.asyncio
    async def test_render_failure_skips_dispatch(self):
        renderer = MagicMock()
        renderer.render = AsyncMock(side_effect=RenderError("export timeout"))
        dispatcher = _dispatcher(renderer=renderer)

        with pytest.raises(RenderError):
            await dispatcher.send_completion_email(_request(generate_pdf=True))

        dispatcher.email_client.send_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_provider_failure_raises_dispatch_error(self):
        error = {"name": "invalid_api_key", "message": "API key is invalid"}
        dispatcher = _dispatcher(result=DispatchResult(success=False, error=error))

        with pytest.raises(DispatchError) as exc_info:
            await dispatcher.send_completion_email(_request())

        assert exc_info.value.provider_error == error

    @pytest.mark.asyncio
    async def test_pdf_requested_without_renderer(self):
        with pytest.raises(RuntimeError):
            await _dispatcher().send_completion_email(_request(generate_pdf=True))
