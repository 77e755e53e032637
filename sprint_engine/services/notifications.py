"""Post-commit notification hook for newly created sprint drafts."""

import asyncio
import html
import logging
from typing import Optional

from sprint_engine.integrations.email import email_service
from sprint_engine.models import ClientProfile, NotificationResult

logger = logging.getLogger(__name__)


def sprint_ready_email(title: str, sprint_url: str, profile: Optional[ClientProfile] = None) -> dict:
    """Subject, plain-text and HTML bodies for the "sprint ready" email."""
    client_name = profile.greeting_name() if profile else None
    project_name = profile.project_name if profile else None

    greeting = f"Hi {client_name}!" if client_name else "Hi there!"
    project_context = f" for {project_name}" if project_name else ""
    subject = f"Your Sprint Plan is Ready: {title}"

    text = f"""{greeting}

Great news - we've analyzed your project requirements and created a custom 2-week sprint plan just for you{project_context}.

Sprint Title: {title}

View your sprint plan here:
{sprint_url}

Your sprint plan includes:
• Selected deliverables with fixed pricing
• Detailed backlog with story points
• Day-by-day timeline for 2 weeks
• Clear goals and acceptance criteria

This plan is a draft and we're happy to discuss any adjustments. Simply reply to this email with your questions or feedback.

Looking forward to working with you!

Best regards,
The Sprint Planning Team
"""

    safe_title = html.escape(title)
    safe_url = html.escape(sprint_url, quote=True)
    body = f"""
    <html>
    <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto;">
        <h1 style="font-size: 24px; color: #000;">Your Sprint Plan is Ready!</h1>

        <p>{html.escape(greeting)}</p>

        <p>Great news - we've analyzed your project requirements and created a custom
        2-week sprint plan tailored specifically to your needs{html.escape(project_context)}.</p>

        <div style="background-color: #f8f9fa; padding: 16px; border-left: 4px solid #000;
                    margin: 24px 0; font-weight: 600;">
            {safe_title}
        </div>

        <p style="text-align: center; margin: 20px 0;">
            <a href="{safe_url}"
               style="background-color: #000; color: white; padding: 14px 32px;
                      text-decoration: none; border-radius: 6px; display: inline-block;">
                View Your Sprint Plan
            </a>
        </p>

        <p><strong>What's included in your sprint plan:</strong></p>
        <ul>
            <li>Selected deliverables with fixed pricing</li>
            <li>Detailed backlog with story points and acceptance criteria</li>
            <li>Day-by-day timeline for 2 weeks</li>
            <li>Clear goals, assumptions, and risk assessment</li>
        </ul>

        <p>This plan is a draft and we're happy to discuss any adjustments.
        Simply reply to this email with your questions or feedback.</p>

        <p>Best regards,<br>
        <strong>The Sprint Planning Team</strong></p>

        <p style="font-size: 12px; color: #6b7280;">
            If you can't click the button above, copy and paste this link into your browser:<br>
            <a href="{safe_url}">{safe_url}</a>
        </p>
    </body>
    </html>
    """

    return {"subject": subject, "text": text, "html": body}


class NotificationHook:
    """
    Best-effort notifications that run after a sprint draft is committed.

    Failures come back as a NotificationResult and are only logged; they
    never propagate to the caller and never roll anything back.
    """

    def __init__(self, sender=None):
        self._sender = sender

    @property
    def sender(self):
        return self._sender or email_service

    async def sprint_ready(
        self,
        profile: Optional[ClientProfile],
        title: str,
        sprint_url: str
    ) -> NotificationResult:
        """
        Tell the client their sprint plan is ready.

        Args:
            profile: Normalized intake profile (email and greeting name)
            title: Sprint title
            sprint_url: Public link to the sprint

        Returns:
            NotificationResult (never raises)
        """
        recipient = profile.email if profile else None
        if not recipient:
            logger.warning("No recipient email found in document - skipping notification")
            return NotificationResult(success=False, error="No recipient email")

        try:
            content = sprint_ready_email(title, sprint_url, profile)
            # Gmail client is synchronous
            result = await asyncio.to_thread(
                self.sender.send,
                recipient,
                content["subject"],
                content["text"],
                content["html"],
            )
        except Exception as e:
            logger.error(f"Sprint notification to {recipient} failed: {e}")
            return NotificationResult(success=False, error=str(e))

        if result.success:
            logger.info(f"Sprint notification sent to {recipient}: {sprint_url}")
        else:
            logger.warning(f"Sprint notification to {recipient} not sent: {result.error}")
        return result


# Singleton instance
notification_hook = NotificationHook()
