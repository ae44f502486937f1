"""Email service with template rendering and provider abstraction."""
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import aiosmtplib
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from email_validator import EmailNotValidError, validate_email
from jinja2 import Environment, FileSystemLoader, select_autoescape
from jinja2.exceptions import TemplateError

from badcompany.config import get_settings
from badcompany.errors import InvalidRecipientError

logger = logging.getLogger(__name__)


def _redact_email(email: str) -> str:
    """Redact email address for safe logging (e.g., u***@example.com)."""
    try:
        local, domain = email.split("@")
        return f"{local[0]}***@{domain}" if local else f"***@{domain}"
    except (ValueError, IndexError):
        return "***"


# Template setup - load from backend/badcompany/templates/emails/
TEMPLATE_DIR = Path(__file__).parent.parent / "templates" / "emails"


class TemplateRenderer:
    """Jinja2 template renderer for email templates."""

    def __init__(self):
        self._env: Optional[Environment] = None

    def _get_env(self) -> Environment:
        """Lazy load the Jinja2 environment."""
        if self._env is None:
            if TEMPLATE_DIR.exists():
                self._env = Environment(
                    loader=FileSystemLoader(str(TEMPLATE_DIR)),
                    autoescape=select_autoescape(['html', 'xml']),
                )
            else:
                logger.warning(f"Email template directory not found: {TEMPLATE_DIR}")
                self._env = Environment(autoescape=select_autoescape(['html', 'xml']))
        return self._env

    def render(self, template_name: str, **context) -> str:
        """Render a template with the given context."""
        try:
            template = self._get_env().get_template(template_name)
            return template.render(**context)
        except TemplateError as e:
            logger.error(f"Failed to render template {template_name}: {e}")
            # Return a simple fallback
            return f"Error rendering email template: {template_name}"


template_renderer = TemplateRenderer()


class EmailProvider(ABC):
    """Abstract base class for email providers."""

    @abstractmethod
    async def send(
        self,
        to: str,
        subject: str,
        html: str,
        text: str,
        headers: Optional[dict[str, str]] = None,
        from_name: Optional[str] = None,
    ) -> bool:
        """Send an email. Returns True if successful."""
        pass


class SMTPProvider(EmailProvider):
    """SMTP email provider using aiosmtplib."""

    def build_message(
        self,
        to: str,
        subject: str,
        html: str,
        text: str,
        headers: Optional[dict[str, str]] = None,
        from_name: Optional[str] = None,
    ) -> MIMEMultipart:
        settings = get_settings()
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{from_name or settings.email_from_name} <{settings.email_from_address}>"
        msg["To"] = to
        for name, value in (headers or {}).items():
            msg[name] = value

        msg.attach(MIMEText(text, "plain"))
        msg.attach(MIMEText(html, "html"))
        return msg

    async def send(
        self,
        to: str,
        subject: str,
        html: str,
        text: str,
        headers: Optional[dict[str, str]] = None,
        from_name: Optional[str] = None,
    ) -> bool:
        """Send email via SMTP using aiosmtplib."""
        settings = get_settings()
        redacted = _redact_email(to)
        logger.info(f"SMTP: attempting to send email to {redacted}, subject='{subject}'")
        try:
            msg = self.build_message(to, subject, html, text, headers=headers, from_name=from_name)

            await aiosmtplib.send(
                msg,
                hostname=settings.smtp_host,
                port=settings.smtp_port,
                username=settings.smtp_user if settings.smtp_user else None,
                password=settings.smtp_password if settings.smtp_password else None,
                start_tls=settings.smtp_use_tls,
            )
            logger.info(f"SMTP: email sent successfully to {redacted}")
            return True
        except aiosmtplib.SMTPConnectError as e:
            logger.error(
                f"SMTP connection failed for {redacted}: host={settings.smtp_host}, "
                f"port={settings.smtp_port}, error={e}"
            )
            return False
        except aiosmtplib.SMTPAuthenticationError as e:
            logger.error(f"SMTP authentication failed for {redacted}: {e}")
            return False
        except aiosmtplib.SMTPResponseException as e:
            logger.error(
                f"SMTP error for {redacted}: code={e.code}, message={e.message}"
            )
            return False
        except (aiosmtplib.SMTPException, smtplib.SMTPException, OSError) as e:
            logger.error(
                f"SMTP: unexpected error sending to {redacted}: {type(e).__name__}: {e}"
            )
            return False


class EmailService:
    """Email service with template rendering and provider abstraction."""

    def __init__(self):
        self._provider: Optional[EmailProvider] = None

    def _get_provider(self) -> EmailProvider:
        """Lazy load the SMTP provider."""
        if self._provider is None:
            self._provider = SMTPProvider()
        return self._provider

    def use_provider(self, provider: Optional[EmailProvider]) -> None:
        """Swap the delivery provider (None restores the SMTP default)."""
        self._provider = provider

    @staticmethod
    def normalize_recipient(email: str) -> str:
        """Return the normalized address or raise InvalidRecipientError."""
        try:
            return validate_email(email, check_deliverability=False).normalized
        except EmailNotValidError as e:
            raise InvalidRecipientError(f"Invalid recipient address: {_redact_email(email)}", details=str(e))

    async def send_campaign_email(
        self,
        to: str,
        subject: str,
        html: str,
        text: str,
        headers: Optional[dict[str, str]] = None,
    ) -> bool:
        """Deliver one personalized campaign email.

        Raises InvalidRecipientError before contacting the mail server when the
        address is malformed.
        """
        recipient = self.normalize_recipient(to)
        settings = get_settings()
        if not settings.email_enabled:
            logger.info(f"Email disabled - would send campaign '{subject}' to {_redact_email(to)}")
            return False

        return await self._get_provider().send(
            to=recipient,
            subject=subject,
            html=html,
            text=text,
            headers=headers,
        )

    async def send_test_campaign(self, email: str, subject: str, content: str, preview: Optional[str]) -> bool:
        """Send a preview of a campaign, flagged as a test, to an admin."""
        settings = get_settings()
        if not settings.email_enabled:
            logger.info(f"Email disabled - would send test campaign to {_redact_email(email)}")
            return False

        banner = template_renderer.render("test_banner.html", recipient=email)
        return await self._get_provider().send(
            to=email,
            subject=f"[TESTE] {subject}",
            html=banner + content,
            text=preview or subject,
            from_name=f"{settings.email_from_name} (TESTE)",
        )

    async def send_newsletter_welcome(self, email: str, name: Optional[str] = None) -> bool:
        """Send welcome email after newsletter signup."""
        settings = get_settings()
        if not settings.email_enabled:
            logger.info(f"Email disabled - would send newsletter welcome to {_redact_email(email)}")
            return False

        context = {
            "name": name or settings.newsletter_name_fallback,
            "app_name": settings.email_from_name,
            "site_url": settings.site_url.rstrip("/"),
        }
        html = template_renderer.render("newsletter_welcome.html", **context)
        text = template_renderer.render("newsletter_welcome.txt", **context)

        return await self._get_provider().send(
            to=email,
            subject=f"Bem-vindo à newsletter {settings.email_from_name}",
            html=html,
            text=text,
        )

    async def send_bookings_notification(self, subject: str, template: str, reply_to: str, **context) -> bool:
        """Forward a website form to the bookings inbox.

        ``template`` names an ``.html``/``.txt`` pair; replies go to the visitor.
        """
        settings = get_settings()
        if not settings.email_enabled:
            logger.info(f"Email disabled - would forward {template} from {_redact_email(reply_to)}")
            return False

        return await self._get_provider().send(
            to=settings.bookings_email,
            subject=subject,
            html=template_renderer.render(f"{template}.html", **context),
            text=template_renderer.render(f"{template}.txt", **context),
            headers={"Reply-To": reply_to},
        )


email_service = EmailService()
