"""
Tests for scripts/send_test_notification.py (dev helper CLI).
"""

import importlib.util
from pathlib import Path
from unittest.mock import Mock, patch

import httpx

_SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "send_test_notification.py"
_spec = importlib.util.spec_from_file_location("send_test_notification", _SCRIPT)
script = importlib.util.module_from_spec(_spec)
_spec.loader.exec_module(script)


class TestSendTestNotification:
    def test_posts_completion_payload(self):
        with patch.object(script.httpx, "post") as mock_post:
            mock_post.return_value = Mock(status_code=200, json=Mock(return_value={"success": True}))

            code = script.main(["--to", "a@x.com, b@y.org", "--pdf", "--url", "http://svc:9000/"])

        assert code == 0
        url = mock_post.call_args.args[0]
        payload = mock_post.call_args.kwargs["json"]
        assert url == "http://svc:9000/api/send-completion-email"
        assert payload["recipients"] == "a@x.com, b@y.org"
        assert payload["generatePdf"] is True
        assert "<table>" in payload["html"]

    def test_project_variant(self):
        with patch.object(script.httpx, "post") as mock_post:
            mock_post.return_value = Mock(status_code=200, json=Mock(return_value={}))

            script.main(["--to", "c@x.com", "--project", "Redesign", "--name", "Jane"])

        assert mock_post.call_args.args[0].endswith("/api/send-project-completion")
        assert mock_post.call_args.kwargs["json"] == {
            "name": "Jane", "email": "c@x.com", "projectName": "Redesign",
        }

    def test_non_200_exits_1(self):
        with patch.object(script.httpx, "post") as mock_post:
            mock_post.return_value = Mock(
                status_code=400, json=Mock(return_value={"error": "Invalid email format"})
            )
            assert script.main(["--to", "nope"]) == 1

    def test_connection_error_exits_1(self):
        with patch.object(script.httpx, "post", side_effect=httpx.ConnectError("refused")):
            assert script.main(["--to", "a@x.com"]) == 1
