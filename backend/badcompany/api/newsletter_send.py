import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from badcompany.auth.admin import AdminIdentity, current_admin
from badcompany.database import SessionFactory, get_session_factory
from badcompany.errors import NewsletterError, ValidationError, error_body
from badcompany.schemas.newsletter import (
    NewsletterSendRequest,
    NewsletterSendResponse,
    NewsletterTestRequest,
    NewsletterTestResponse,
)
from badcompany.services.campaign_sender import CampaignSender
from badcompany.services.email_service import _redact_email, email_service

logger = logging.getLogger(__name__)

router = APIRouter()


def _internal_error(message: str, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content=error_body(message, str(exc)))


@router.post("/newsletter-send", response_model=NewsletterSendResponse)
async def send_newsletter(
    data: NewsletterSendRequest,
    admin: AdminIdentity = Depends(current_admin),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Send a campaign to the selected audience and report per-recipient outcomes."""
    sender = CampaignSender(session_factory)
    try:
        result = await sender.send_campaign(
            subject=data.subject,
            content=data.content,
            preview=data.preview,
            audience_type=data.audience_type,
        )
    except NewsletterError:
        raise
    except Exception as e:
        logger.exception(f"Campaign send requested by {admin.user_id} failed: {type(e).__name__}: {e}")
        return _internal_error("Erro ao enviar newsletter", e)

    return NewsletterSendResponse(
        success=True,
        message=result.message,
        campaign_id=result.campaign_id,
        total_recipients=result.success_count,
        failed=result.failure_count,
    )


@router.post("/newsletter-test", response_model=NewsletterTestResponse)
async def send_test_newsletter(data: NewsletterTestRequest, admin: AdminIdentity = Depends(current_admin)):
    """Send a preview of the campaign to the admin's own address."""
    if not data.subject or not data.content:
        raise ValidationError("Assunto e conteúdo são obrigatórios")
    if not admin.email:
        raise ValidationError("Email do usuário não disponível")

    try:
        sent = await email_service.send_test_campaign(admin.email, data.subject, data.content, data.preview)
    except NewsletterError:
        raise
    except Exception as e:
        logger.exception(f"Test send to {_redact_email(admin.email)} failed: {type(e).__name__}: {e}")
        return _internal_error("Erro ao enviar email de teste", e)

    if not sent:
        return JSONResponse(status_code=500, content=error_body("Erro ao enviar email de teste"))

    return NewsletterTestResponse(
        success=True,
        message=f"Email de teste enviado com sucesso para {admin.email}",
    )
