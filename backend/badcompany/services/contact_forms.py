"""Website forms forwarded by email to the bookings inbox."""
import logging
from typing import Optional

from badcompany.errors import InvalidRecipientError, ValidationError
from badcompany.schemas.forms import BudgetRequest, ContactRequest
from badcompany.services.email_service import EmailService, _redact_email, email_service

logger = logging.getLogger(__name__)

MISSING_FIELDS = "Faltam campos obrigatórios"
INVALID_EMAIL = "Email inválido"


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def _single_line(value: str) -> str:
    # Form values end up in the Subject header
    return " ".join(value.split())


def _sender_address(email: str) -> str:
    try:
        return EmailService.normalize_recipient(email)
    except InvalidRecipientError:
        raise ValidationError(INVALID_EMAIL)


class ContactFormService:
    def __init__(self, mailer: EmailService = email_service):
        self.mailer = mailer

    async def submit_contact(self, data: ContactRequest) -> bool:
        """Validate a contact message and forward it. Returns the delivery result."""
        name, email, message = _clean(data.nome), _clean(data.email), _clean(data.mensagem)
        if not name or not email or not message:
            raise ValidationError(MISSING_FIELDS)
        sender = _sender_address(email)

        logger.info(f"Contact message from {_redact_email(sender)}")
        return await self.mailer.send_bookings_notification(
            subject=f"Nova mensagem de {_single_line(name)}",
            template="contact_message",
            reply_to=sender,
            name=name,
            email=sender,
            message=message,
        )

    async def submit_budget_request(self, data: BudgetRequest) -> bool:
        """Validate an event budget request and forward it.

        Name, email and event type are required; the rest is optional and
        rendered with a placeholder when absent.
        """
        name, email, event_type = _clean(data.name), _clean(data.email), _clean(data.event_type)
        if not name or not email or not event_type:
            raise ValidationError(MISSING_FIELDS)
        sender = _sender_address(email)

        logger.info(f"Budget request for '{event_type}' from {_redact_email(sender)}")
        return await self.mailer.send_bookings_notification(
            subject="Novo Pedido de Orçamento - BadCompany",
            template="budget_request",
            reply_to=sender,
            name=name,
            email=sender,
            phone=_clean(data.phone),
            event_type=event_type,
            date=_clean(data.date),
            guest_count=data.guest_count,
            details=_clean(data.details),
        )
