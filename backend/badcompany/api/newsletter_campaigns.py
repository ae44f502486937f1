import logging
from typing import List

from fastapi import APIRouter, Depends

from badcompany.auth.admin import AdminIdentity, current_admin
from badcompany.database import SessionFactory, get_session_factory
from badcompany.errors import ValidationError
from badcompany.schemas.newsletter import (
    CampaignAnalyticsRequest,
    CampaignAnalyticsResponse,
    CampaignListItem,
    NewsletterSendResponse,
    ReconcileResponse,
)
from badcompany.services.analytics_service import AnalyticsService
from badcompany.services.campaign_sender import CampaignSender

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/newsletter-analytics", response_model=CampaignAnalyticsResponse)
async def campaign_analytics(
    data: CampaignAnalyticsRequest,
    admin: AdminIdentity = Depends(current_admin),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    if data.campaign_id is None:
        raise ValidationError("ID da campanha é obrigatório")
    return await AnalyticsService(session_factory).campaign_analytics(data.campaign_id, data.timeframe)


@router.get("/newsletter-campaigns", response_model=List[CampaignListItem])
async def list_campaigns(
    admin: AdminIdentity = Depends(current_admin),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    return await AnalyticsService(session_factory).list_campaigns()


@router.post("/newsletter-campaigns/{campaign_id}/resume", response_model=NewsletterSendResponse)
async def resume_campaign(
    campaign_id: int,
    admin: AdminIdentity = Depends(current_admin),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Finish an interrupted send; subscribers already mailed are skipped."""
    logger.info(f"User {admin.user_id} resuming campaign {campaign_id}")
    result = await CampaignSender(session_factory).resume_campaign(campaign_id)
    return NewsletterSendResponse(
        success=True,
        message=result.message,
        campaign_id=result.campaign_id,
        total_recipients=result.success_count,
        failed=result.failure_count,
    )


@router.post("/newsletter-campaigns/{campaign_id}/reconcile", response_model=ReconcileResponse)
async def reconcile_campaign(
    campaign_id: int,
    admin: AdminIdentity = Depends(current_admin),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    updated = await AnalyticsService(session_factory).reconcile_campaign_counters(campaign_id)
    return ReconcileResponse(campaigns_updated=updated)
