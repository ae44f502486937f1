import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status

from badcompany.auth.admin import AdminIdentity, current_admin
from badcompany.database import SessionFactory, get_session_factory
from badcompany.errors import ValidationError
from badcompany.schemas.newsletter import (
    ImportResponse,
    NewsletterSubscribeRequest,
    NewsletterSubscribeResponse,
    SubscriberListResponse,
)
from badcompany.services.analytics_service import AnalyticsService
from badcompany.services.email_service import _redact_email, email_service
from badcompany.services.subscriber_import import SubscriberImporter
from badcompany.services.subscriber_service import SubscriberService

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_PAGE_SIZE = 100


@router.post("/newsletters-subscribers/import", response_model=ImportResponse)
async def import_subscribers(
    file: Optional[UploadFile] = File(None),
    admin: AdminIdentity = Depends(current_admin),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Bulk-load subscribers from a CSV with an ``email`` header column."""
    if file is None:
        raise ValidationError("Nenhum ficheiro enviado")
    if not (file.filename or "").lower().endswith(".csv"):
        raise ValidationError("O ficheiro deve estar no formato CSV")

    raw = await file.read()
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        raise ValidationError("O ficheiro deve estar codificado em UTF-8")

    logger.info(f"User {admin.user_id} importing subscribers from {file.filename}")
    return await SubscriberImporter(session_factory).import_csv(text)


@router.post("/newsletter-subscribe", response_model=NewsletterSubscribeResponse, status_code=status.HTTP_201_CREATED)
async def subscribe(
    data: NewsletterSubscribeRequest,
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Subscribe to the BadCompany newsletter. No authentication required."""
    outcome = await SubscriberService(session_factory).subscribe(data.email, data.name, data.source)
    if outcome.already_active:
        return NewsletterSubscribeResponse(message="Este email já está inscrito na newsletter", email=outcome.email)

    # Send welcome email in background
    try:
        asyncio.create_task(email_service.send_newsletter_welcome(outcome.email, data.name))
    except RuntimeError:
        logger.warning(f"Could not create newsletter welcome email task for {_redact_email(outcome.email)}")

    return NewsletterSubscribeResponse(message="Inscrição na newsletter realizada com sucesso", email=outcome.email)


@router.get("/newsletter-subscribe", response_model=SubscriberListResponse)
async def list_subscribers(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=MAX_PAGE_SIZE, alias="pageSize"),
    active: Optional[bool] = Query(None),
    source: Optional[str] = Query(None),
    admin: AdminIdentity = Depends(current_admin),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    return await AnalyticsService(session_factory).subscriber_overview(page, page_size, active, source)
