"""
Tests for environment-driven settings and the app's ambient endpoints.
"""

import os
from unittest.mock import patch

import pytest

os.environ.setdefault("RESEND_API_KEY", "re_test_key")

from fastapi.testclient import TestClient

from app.config import DEFAULT_SENDER, Settings


class TestSettingsFromEnv:
    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings.from_env()

        assert settings.resend_api_key == ""
        assert settings.resend_api_url == "https://api.resend.com"
        assert settings.email_from == DEFAULT_SENDER
        assert settings.render_engine == "local"
        assert settings.render_load_timeout_seconds == 30.0
        assert settings.render_export_timeout_seconds == 60.0
        assert settings.cors_allow_origin == "*"

    def test_reads_environment(self):
        env = {
            "RESEND_API_KEY": " re_live ",
            "RESEND_API_URL": "https://resend.internal/",
            "EMAIL_FROM": "ops@example.com",
            "ADMIN_EMAIL": "admin@example.com",
            "RENDER_ENGINE": "Serverless",
            "CHROMIUM_PACK_URL": "https://example.com/pack.tar",
            "RENDER_LOAD_TIMEOUT_SECONDS": "12.5",
            "LOG_LEVEL": "debug",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = Settings.from_env()

        assert settings.resend_api_key == "re_live"
        assert settings.resend_api_url == "https://resend.internal"
        assert settings.email_from == "ops@example.com"
        assert settings.admin_email == "admin@example.com"
        assert settings.render_engine == "serverless"
        assert settings.chromium_pack_url == "https://example.com/pack.tar"
        assert settings.render_load_timeout_seconds == 12.5
        assert settings.log_level == "DEBUG"

    def test_unparseable_number_falls_back_to_default(self):
        with patch.dict(os.environ, {"RENDER_EXPORT_TIMEOUT_SECONDS": "soon"}, clear=True):
            settings = Settings.from_env()
        assert settings.render_export_timeout_seconds == 60.0


class TestAmbientEndpoints:
    def test_health(self):
        from app.main import app
        response = TestClient(app).get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_root(self):
        from app.main import app
        response = TestClient(app).get("/")
        assert response.json()["message"] == "Completion Notifier API"


class TestRenderProviderDependency:
    def test_provider_is_built_once_per_configuration(self):
        from app.dependencies import get_render_provider

        first = get_render_provider(Settings(render_engine="local"))
        second = get_render_provider(Settings(render_engine="local"))
        assert first is second
        assert first.resolve().name == "local"

    def test_bad_engine_does_not_fail_dependency_resolution(self):
        from app.dependencies import get_render_provider

        provider = get_render_provider(Settings(render_engine="serverless"))
        with pytest.raises(ValueError, match="CHROMIUM_PACK_URL"):
            provider.resolve()

    def test_pdf_renderer_uses_configured_timeouts(self):
        from app.dependencies import get_pdf_renderer, get_render_provider

        settings = Settings(render_load_timeout_seconds=5, render_export_timeout_seconds=7)
        renderer = get_pdf_renderer(settings, get_render_provider(settings))
        assert renderer.load_timeout == 5
        assert renderer.export_timeout == 7
