# =============================================================================
# Email Delivery Integration (AWS SES)
# =============================================================================
#
# Setup:
#   1. Verify your sending email in AWS SES console
#   2. Set env vars:
#      - AWS_SES_FROM_EMAIL=noreply@yourdomain.com
#      - AWS_ACCESS_KEY_ID=...
#      - AWS_SECRET_ACCESS_KEY=...
#      - AWS_REGION=us-east-1
#
# Delivery is best-effort: failures are logged and never fail the
# operation that triggered the email.
#
# =============================================================================

import logging
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from postboard.config import Settings, get_settings

logger = logging.getLogger(__name__)


# =============================================================================
# Email Templates
# =============================================================================

TEMPLATES = {
    "welcome": {
        "subject": "Welcome to Postboard!",
        "html": """
        <html>
        <body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
            <h1 style="color: #333;">Welcome to Postboard, {name}!</h1>
            <p>Your account is ready. Share your first post and follow people you like.</p>
            <p style="text-align: center; margin: 30px 0;">
                <a href="{app_url}" style="background: #4A90A4; color: white; padding: 12px 30px; text-decoration: none; border-radius: 6px; display: inline-block;">
                    Open Postboard
                </a>
            </p>
        </body>
        </html>
        """,
        "text": """
Welcome to Postboard, {name}!

Your account is ready. Share your first post at: {app_url}
        """,
    },
}


# =============================================================================
# Email Service
# =============================================================================

class EmailService:
    """Send emails via AWS SES."""

    def __init__(self, settings: Settings | None = None, client: Any = None):
        self.settings = settings or get_settings()
        self._client = client

    @property
    def client(self):
        """Lazy-load SES client."""
        if self._client is None and self.settings.use_aws:
            self._client = boto3.client(
                "ses",
                region_name=self.settings.aws_region,
                aws_access_key_id=self.settings.aws_access_key_id,
                aws_secret_access_key=self.settings.aws_secret_access_key,
            )
        return self._client

    @property
    def is_configured(self) -> bool:
        """Check if email sending is properly configured."""
        return self.client is not None and bool(self.settings.aws_ses_from_email)

    async def send(
        self,
        to: str,
        template: str,
        data: dict[str, Any] | None = None,
    ) -> bool:
        """
        Send an email using a template.

        Returns:
            True if sent successfully, False otherwise
        """
        if template not in TEMPLATES:
            logger.error(f"Unknown email template: {template}")
            return False

        if not self.is_configured:
            logger.warning(f"Email not configured - would send '{template}' to {to}")
            return False

        tpl = TEMPLATES[template]
        data = data or {}

        try:
            response = self.client.send_email(
                Source=self.settings.aws_ses_from_email,
                Destination={"ToAddresses": [to]},
                Message={
                    "Subject": {"Data": tpl["subject"], "Charset": "UTF-8"},
                    "Body": {
                        "Html": {"Data": tpl["html"].format(**data), "Charset": "UTF-8"},
                        "Text": {"Data": tpl["text"].format(**data), "Charset": "UTF-8"},
                    },
                },
            )
            logger.info(f"Email sent to {to}: {template} (MessageId: {response['MessageId']})")
            return True

        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to send email to {to}: {e}")
            return False
        except KeyError as e:
            logger.error(f"Missing template variable for '{template}': {e}")
            return False

    async def send_welcome(self, email: str, name: str) -> bool:
        """Send the welcome email for a new account."""
        origins = self.settings.cors_origins_list
        app_url = origins[0] if origins else "http://localhost:3000"
        return await self.send(
            to=email,
            template="welcome",
            data={"name": name, "app_url": app_url},
        )
