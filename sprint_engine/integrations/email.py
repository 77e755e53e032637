"""Gmail integration for client notifications."""

import base64
import logging
import os
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from google.oauth2 import service_account
from googleapiclient.discovery import build

from sprint_engine.core.config import get_settings
from sprint_engine.models import NotificationResult

logger = logging.getLogger(__name__)


class EmailService:
    """
    Service for sending emails via Gmail API.

    Uses service account with domain-wide delegation. Callers only see a
    NotificationResult; transport details stay here.
    """

    def __init__(self):
        """Initialize service."""
        self._service = None
        self._settings = None
        self._available = None

    @property
    def settings(self):
        """Lazy load settings."""
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    @property
    def service(self):
        """Lazy initialize Gmail service."""
        if self._service is None:
            self._service = self._build_service()
        return self._service

    def _build_service(self):
        """Build Gmail service with service account."""
        try:
            credentials_path = self.settings.GOOGLE_CREDENTIALS_PATH

            if not os.path.exists(credentials_path):
                logger.warning(f"Google credentials not found: {credentials_path}")
                return None

            credentials = service_account.Credentials.from_service_account_file(
                credentials_path,
                scopes=["https://www.googleapis.com/auth/gmail.send"]
            )

            # Delegate to the studio mailbox
            delegated_credentials = credentials.with_subject(self.settings.EMAIL_SENDER)

            service = build("gmail", "v1", credentials=delegated_credentials, cache_discovery=False)
            logger.info("Gmail service initialized")
            return service

        except Exception as e:
            logger.error(f"Failed to initialize Gmail service: {e}")
            return None

    def is_available(self) -> bool:
        """Check if email service is available."""
        if self._available is None:
            self._available = self.service is not None
        return self._available

    def build_message(self, to: str, subject: str, text: str, html: str) -> MIMEMultipart:
        """Plain-text and HTML alternatives in one message."""
        message = MIMEMultipart("alternative")
        message["to"] = to
        message["from"] = self.settings.EMAIL_SENDER
        message["subject"] = subject
        message.attach(MIMEText(text, "plain"))
        message.attach(MIMEText(html, "html"))
        return message

    def send(self, to: str, subject: str, text: str, html: str) -> NotificationResult:
        """
        Send one email.

        Args:
            to: Recipient email
            subject: Email subject
            text: Plain-text body
            html: HTML body

        Returns:
            NotificationResult with the Gmail message id, or the error
        """
        if not self.is_available():
            logger.warning("Email service not available")
            return NotificationResult(success=False, error="Email service not available")

        try:
            message = self.build_message(to, subject, text, html)

            # Encode and send
            raw = base64.urlsafe_b64encode(message.as_bytes()).decode()
            sent = self.service.users().messages().send(
                userId="me",
                body={"raw": raw}
            ).execute()

            message_id = sent.get("id") if isinstance(sent, dict) else None
            logger.info(f"Email sent to {to}: {subject} ({message_id})")
            return NotificationResult(success=True, message_id=message_id)

        except Exception as e:
            logger.error(f"Failed to send email to {to}: {e}")
            return NotificationResult(success=False, error=str(e))


# Singleton instance
email_service = EmailService()
