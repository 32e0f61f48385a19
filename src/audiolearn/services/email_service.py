"""Magic-link email delivery through the Resend HTTP API."""

from __future__ import annotations

from html import escape

import httpx
import structlog

from audiolearn.config.app_config import EmailConfig

logger = structlog.get_logger(__name__)

SUBJECT = "Sign in to Audio Courses"

HTML_TEMPLATE = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{subject}</title></head>
<body style="font-family: sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
  <h1 style="color: #0066cc;">Audio Courses</h1>
  <p>Click the button below to securely sign in to your account:</p>
  <p><a href="{url}" style="background: #0066cc; color: #fff; padding: 12px 24px;
     border-radius: 6px; text-decoration: none;">Sign in</a></p>
  <p style="font-size: 13px; color: #666;">This link expires in {ttl} minutes and can only be used once.
  If you did not request it, you can ignore this email.</p>
</body>
</html>
"""

TEXT_TEMPLATE = """Sign in to Audio Courses

Open this link to sign in: {url}

This link expires in {ttl} minutes and can only be used once.
"""


class EmailDeliveryError(Exception):
    """Email provider rejected or failed the request."""

    pass


class EmailService:
    """Sends sign-in emails."""

    def __init__(
        self,
        config: EmailConfig,
        development: bool = False,
        http_client: httpx.Client | None = None,
    ):
        self.config = config
        self.development = development
        self._client = http_client or httpx.Client(timeout=config.timeout)

        if not config.api_key:
            logger.warning("email.not_configured")

    def send_magic_link_email(self, to_email: str, magic_link_url: str, ttl_minutes: int = 15) -> bool:
        """Send a magic-link email.

        Without an API key the link is logged instead; that counts as sent
        only in development so the sign-in flow stays testable locally.

        Returns:
            True if the email was accepted (or logged in development)
        """
        if not self.config.api_key:
            logger.warning(
                "email.not_sent",
                to=to_email,
                magic_link_url=magic_link_url,
                development=self.development,
            )
            return self.development

        payload = {
            "from": self.config.from_email,
            "to": [to_email],
            "subject": SUBJECT,
            "html": HTML_TEMPLATE.format(
                subject=SUBJECT, url=escape(magic_link_url, quote=True), ttl=ttl_minutes
            ),
            "text": TEXT_TEMPLATE.format(url=magic_link_url, ttl=ttl_minutes),
        }

        try:
            self._deliver(payload)
        except EmailDeliveryError as e:
            logger.error("email.failed", to=to_email, error=str(e))
            return False

        logger.info("email.sent", to=to_email)
        return True

    def _deliver(self, payload: dict) -> None:
        try:
            response = self._client.post(
                self.config.api_url,
                json=payload,
                headers={"Authorization": f"Bearer {self.config.api_key}"},
            )
        except httpx.HTTPError as e:
            raise EmailDeliveryError(f"Cannot reach email provider: {e}") from e

        if response.is_error:
            raise EmailDeliveryError(
                f"Email provider returned {response.status_code}: {response.text[:200]}"
            )
