"""
Email service for transactional mail via the SendGrid v3 API
"""
import logging
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from app.config import settings
from app.core.exceptions import EmailDeliveryFailedError

logger = logging.getLogger(__name__)


def _redact_email(email: str) -> str:
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


class EmailService:
    """Sends dynamic-template emails; logs instead of sending when no API key is set"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        from_email: Optional[str] = None,
        from_name: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = settings.SENDGRID_API_KEY if api_key is None else api_key
        self.api_url = api_url or settings.SENDGRID_API_URL
        self.from_email = from_email or settings.SENDGRID_FROM_EMAIL
        self.from_name = from_name or settings.SENDGRID_FROM_NAME
        self.timeout = timeout or settings.SENDGRID_TIMEOUT_SECONDS
        self.transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def send(self, to_email: str, template_id: str, variables: Dict[str, Any]) -> None:
        """
        Send a dynamic-template email

        Raises:
            EmailDeliveryFailedError: If the provider cannot be reached or rejects the message
        """
        if not self.is_configured:
            # Dev mode: log the email instead of sending
            logger.info(
                f"Email not sent (no SendGrid API key): to={_redact_email(to_email)} "
                f"template={template_id} variables={sorted(variables)}"
            )
            return

        message = {
            "personalizations": [{"to": [{"email": to_email}], "dynamic_template_data": variables}],
            "from": {"email": self.from_email, "name": self.from_name},
            "template_id": template_id,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.post(self.api_url, json=message, headers=headers)
                response.raise_for_status()
            except (httpx.RequestError, httpx.HTTPStatusError) as e:
                logger.error(f"SendGrid delivery to {_redact_email(to_email)} failed: {e}")
                raise EmailDeliveryFailedError("Failed to send verification email")

        logger.info(f"Email sent to {_redact_email(to_email)} (template {template_id})")

    async def send_verification_email(self, to_email: str, token: str, first_name: str) -> None:
        """Mail the raw verification token as a link to the frontend"""
        verification_url = f"{settings.FRONTEND_URL}/verify-email?{urlencode({'token': token})}"
        await self.send(
            to_email,
            settings.SENDGRID_VERIFICATION_TEMPLATE_ID,
            {"name": first_name, "button_url": verification_url},
        )


def get_email_service() -> EmailService:
    """Dependency for the email service"""
    return EmailService()
