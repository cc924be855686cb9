"""
Email service with provider abstraction.

Supports SMTP (default) and the Resend HTTP API. Provider is selected via
configuration.
"""

from __future__ import annotations

import hashlib
import ssl
from abc import ABC, abstractmethod
from collections.abc import Callable
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import TYPE_CHECKING, Any

import aiosmtplib
import httpx
import structlog

from taskkash.config import get_settings
from taskkash.email.templates import password_changed, password_reset, welcome_email

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = structlog.get_logger()

# Template registry: name -> function returning (subject, html, text)
_TEMPLATE_REGISTRY: dict[str, Callable[..., tuple[str, str, str]]] = {
    "welcome": welcome_email,
    "password_reset": password_reset,
    "password_changed": password_changed,
}


class BaseEmailProvider(ABC):
    """Abstract base class for email delivery providers."""

    @abstractmethod
    async def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> bool:
        """Send an email. Returns True on success."""
        ...


class SMTPProvider(BaseEmailProvider):
    """Send emails via SMTP using aiosmtplib."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        from_address: str,
        from_name: str,
        use_tls: bool = True,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_address = from_address
        self.from_name = from_name
        self.use_tls = use_tls

    def build_message(self, to_email: str, subject: str, html_body: str, text_body: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["From"] = f"{self.from_name} <{self.from_address}>"
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.attach(MIMEText(text_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))
        return msg

    async def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> bool:
        """Send via SMTP."""
        msg = self.build_message(to_email, subject, html_body, text_body)
        try:
            await aiosmtplib.send(
                msg,
                hostname=self.host,
                port=self.port,
                username=self.username or None,
                password=self.password or None,
                start_tls=self.use_tls,
                tls_context=ssl.create_default_context() if self.use_tls else None,
            )
        except Exception:
            logger.exception("email_send_failed", to=to_email, provider="smtp")
            return False
        logger.info("email_sent", to=to_email, subject=subject, provider="smtp")
        return True


class ResendProvider(BaseEmailProvider):
    """Send emails via the Resend API."""

    API_URL = "https://api.resend.com/emails"

    def __init__(self, api_key: str, from_address: str, from_name: str) -> None:
        self.api_key = api_key
        self.from_address = from_address
        self.from_name = from_name

    async def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> bool:
        """Send via Resend HTTP API."""
        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.post(
                    self.API_URL,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json={
                        "from": f"{self.from_name} <{self.from_address}>",
                        "to": [to_email],
                        "subject": subject,
                        "html": html_body,
                        "text": text_body,
                    },
                )
                response.raise_for_status()
        except httpx.HTTPError:
            logger.exception("email_send_failed", to=to_email, provider="resend")
            return False
        logger.info("email_sent", to=to_email, subject=subject, provider="resend")
        return True


def _create_provider() -> BaseEmailProvider:
    """Create email provider based on configuration."""
    settings = get_settings()
    provider_name = settings.email_provider.lower()

    if provider_name == "smtp":
        return SMTPProvider(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            from_address=settings.email_from_address,
            from_name=settings.email_from_name,
            use_tls=settings.smtp_use_tls,
        )
    if provider_name == "resend":
        return ResendProvider(
            api_key=settings.resend_api_key,
            from_address=settings.email_from_address,
            from_name=settings.email_from_name,
        )
    msg = f"Unsupported email provider: {provider_name}"
    raise ValueError(msg)


class EmailService:
    """High-level email service: per-recipient rate limiting and templates."""

    RATE_LIMIT_WINDOW = 3600

    def __init__(
        self,
        provider: BaseEmailProvider | None = None,
        redis: Redis | None = None,
        max_per_hour: int | None = None,
    ) -> None:
        self.provider = provider or _create_provider()
        self._redis = redis
        self.max_per_hour = max_per_hour or get_settings().email_rate_limit_per_hour

    async def _check_rate_limit(self, email: str) -> bool:
        """Check if we can send another email to this address."""
        if self._redis is None:
            return True
        key = f"email_rate:{hashlib.sha256(email.lower().encode()).hexdigest()}"
        count = await self._redis.incr(key)
        if count == 1:
            await self._redis.expire(key, self.RATE_LIMIT_WINDOW)
        return count <= self.max_per_hour

    async def send_email(self, to: str, subject: str, html_body: str, text_body: str) -> bool:
        """
        Send an email with rate limiting.

        Returns True if sent, False if rate limited or failed.
        """
        if not await self._check_rate_limit(to):
            logger.warning("email_rate_limited", to=to, subject=subject)
            return False
        return await self.provider.send(to, subject, html_body, text_body)

    async def send_template(self, to: str, template_name: str, context: dict[str, Any]) -> bool:
        """
        Render a registered template with ``context`` as keyword arguments and send it.

        Raises:
            ValueError: If the template name is unknown.
        """
        template_func = _TEMPLATE_REGISTRY.get(template_name)
        if template_func is None:
            msg = f"Unknown template: {template_name}"
            raise ValueError(msg)
        subject, html_body, text_body = template_func(**context)
        return await self.send_email(to, subject, html_body, text_body)


_email_service: EmailService | None = None


def get_email_service(redis: Redis | None = None) -> EmailService:
    """Get or create the email service singleton."""
    global _email_service  # noqa: PLW0603
    if _email_service is None:
        _email_service = EmailService(redis=redis)
    return _email_service


def reset_email_service() -> None:
    """Reset the email service singleton (for testing)."""
    global _email_service  # noqa: PLW0603
    _email_service = None
