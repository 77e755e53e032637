"""Tests for the post-commit notification hook."""

from unittest.mock import MagicMock, patch

from sprint_engine.integrations.email import EmailService
from sprint_engine.models import ClientProfile, NotificationResult
from sprint_engine.services.notifications import NotificationHook, sprint_ready_email

URL = "https://studio.test/sprints/sprint-1"


class TestSprintReadyEmail:

    def test_personalized(self):
        content = sprint_ready_email("Brand Sprint", URL, ClientProfile(first_name="Dana", project_name="Acme"))

        assert content["subject"] == "Your Sprint Plan is Ready: Brand Sprint"
        assert content["text"].startswith("Hi Dana!")
        assert "just for you for Acme." in content["text"]
        assert URL in content["html"]

    def test_generic_greeting(self):
        assert sprint_ready_email("T", URL)["text"].startswith("Hi there!")

    def test_html_is_escaped(self):
        content = sprint_ready_email("<script>alert(1)</script>", URL)
        assert "<script>" not in content["html"]
        assert "&lt;script&gt;" in content["html"]


class TestNotificationHook:
    """Failures are reported, never raised."""

    async def test_sends_to_profile_email(self):
        sender = MagicMock()
        sender.send.return_value = NotificationResult(success=True, message_id="msg-1")

        result = await NotificationHook(sender=sender).sprint_ready(
            ClientProfile(email="dana@acme.io"), "Brand Sprint", URL
        )

        assert result.success is True
        to, subject, _, _ = sender.send.call_args.args
        assert to == "dana@acme.io"
        assert subject == "Your Sprint Plan is Ready: Brand Sprint"

    async def test_no_recipient(self):
        sender = MagicMock()

        result = await NotificationHook(sender=sender).sprint_ready(ClientProfile(), "T", URL)

        assert result.success is False
        assert result.error == "No recipient email"
        sender.send.assert_not_called()

    async def test_sender_exception_is_contained(self):
        sender = MagicMock()
        sender.send.side_effect = RuntimeError("smtp down")

        result = await NotificationHook(sender=sender).sprint_ready(ClientProfile(email="a@b.co"), "T", URL)

        assert result.success is False
        assert "smtp down" in result.error


class TestEmailService:

    def test_unavailable_without_credentials(self):
        service = EmailService()
        result = service.send("a@b.co", "s", "t", "<p>h</p>")

        assert result.success is False
        assert result.error == "Email service not available"

    def test_send_via_gmail(self):
        with patch("sprint_engine.integrations.email.build") as mock_build, \
                patch("sprint_engine.integrations.email.os.path.exists", return_value=True), \
                patch("sprint_engine.integrations.email.service_account.Credentials.from_service_account_file"):
            mock_service = MagicMock()
            mock_service.users.return_value.messages.return_value.send.return_value.execute.return_value = {
                "id": "msg_test_123",
                "labelIds": ["SENT"]
            }
            mock_build.return_value = mock_service

            result = EmailService().send("a@b.co", "Subject", "text", "<p>html</p>")

        assert result.success is True
        assert result.message_id == "msg_test_123"
