"""
Tests for POST /api/send-project-completion (admin + client emails).

The email provider is mocked; no network calls.
"""

import os
from unittest.mock import AsyncMock, MagicMock

import pytest

os.environ.setdefault("RESEND_API_KEY", "re_test_key")

from fastapi.testclient import TestClient

from app.config import Settings, get_settings
from app.dependencies import get_email_client, get_pdf_renderer
from app.models.notification import DispatchResult

ENDPOINT = "/api/send-project-completion"


def _payload(**overrides) -> dict:
    body = {"name": "Ada Lovelace", "email": "ada@example.com", "projectName": "Analytical Engine"}
    body.update(overrides)
    return body


def _make_client(email_client, admin_email="admin@example.com"):
    from app.main import app

    app.dependency_overrides[get_settings] = lambda: Settings(
        resend_api_key="re_test_key", admin_email=admin_email
    )
    app.dependency_overrides[get_email_client] = lambda: email_client
    app.dependency_overrides[get_pdf_renderer] = lambda: None
    return TestClient(app)


@pytest.fixture()
def email_client():
    client = MagicMock()
    client.send_email = AsyncMock(side_effect=[
        DispatchResult(success=True, provider_message_id="msg_admin"),
        DispatchResult(success=True, provider_message_id="msg_client"),
    ])
    return client


@pytest.fixture(autouse=True)
def _clear_overrides():
    yield
    from app.main import app
    app.dependency_overrides.clear()


class TestProjectCompletion:
    def test_sends_admin_then_client(self, email_client):
        response = _make_client(email_client).post(ENDPOINT, json=_payload())

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "adminEmailId": "msg_admin",
            "clientEmailId": "msg_client",
        }

        admin, client = [call.args[0] for call in email_client.send_email.await_args_list]
        assert admin.to == ["admin@example.com"]
        assert admin.subject == "Project Completed: Analytical Engine"
        assert "Ada Lovelace" in admin.html
        assert "ada@example.com" in admin.html
        assert client.to == ["ada@example.com"]
        assert client.subject == 'Your Project "Analytical Engine" is Completed'
        assert admin.sender == client.sender == "noreply@noreply.capitalflasher.com"

    def test_admin_copy_skipped_without_admin_email(self, email_client):
        email_client.send_email.side_effect = None
        email_client.send_email.return_value = DispatchResult(success=True, provider_message_id="msg_client")

        response = _make_client(email_client, admin_email="").post(ENDPOINT, json=_payload())

        assert response.status_code == 200
        assert response.json() == {"success": True, "clientEmailId": "msg_client"}
        assert email_client.send_email.await_count == 1

    def test_user_values_are_html_escaped(self, email_client):
        response = _make_client(email_client).post(
            ENDPOINT, json=_payload(projectName="<script>alert(1)</script>")
        )

        assert response.status_code == 200
        admin = email_client.send_email.await_args_list[0].args[0]
        assert "<script>" not in admin.html
        assert "&lt;script&gt;" in admin.html

    def test_missing_fields(self, email_client):
        response = _make_client(email_client).post(ENDPOINT, json={"name": "Ada"})

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Missing required fields"
        assert "email" in body["details"]
        assert "projectName" in body["details"]
        email_client.send_email.assert_not_awaited()

    def test_invalid_email(self, email_client):
        response = _make_client(email_client).post(ENDPOINT, json=_payload(email="ada"))
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid email format"

    def test_admin_failure_stops_client_email(self, email_client):
        email_client.send_email.side_effect = [
            DispatchResult(success=False, error={"name": "rate_limit_exceeded", "message": "Too many requests"}),
        ]

        response = _make_client(email_client).post(ENDPOINT, json=_payload())

        assert response.status_code == 500
        assert response.json()["error"] == "Email send failed"
        assert response.json()["details"] == "Too many requests"
        assert email_client.send_email.await_count == 1
