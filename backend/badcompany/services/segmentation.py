"""Audience segmentation for newsletter campaigns."""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import Select, and_, select
from sqlalchemy.sql.elements import ColumnElement

from badcompany.config import get_settings
from badcompany.models.newsletter import NewsletterCampaignRecipient, NewsletterSubscriber

logger = logging.getLogger(__name__)

AUDIENCE_ALL = "all"
AUDIENCE_ENGAGED = "engaged"
AUDIENCE_INACTIVE = "inactive"
AUDIENCE_NEW = "new"

AUDIENCE_TYPES = (AUDIENCE_ALL, AUDIENCE_ENGAGED, AUDIENCE_INACTIVE, AUDIENCE_NEW)


def normalize_audience_type(audience_type: Optional[str]) -> str:
    """Unknown audience types silently fall back to every active subscriber."""
    if audience_type in AUDIENCE_TYPES:
        return audience_type
    if audience_type:
        logger.info(f"Unknown audience type '{audience_type}', sending to all active subscribers")
    return AUDIENCE_ALL


def audience_filter(audience_type: Optional[str], now: Optional[datetime] = None) -> ColumnElement[bool]:
    """Translate an audience type into a WHERE clause over newsletter_subscribers."""
    settings = get_settings()
    now = now or datetime.now(timezone.utc)
    audience = normalize_audience_type(audience_type)
    is_active = NewsletterSubscriber.active.is_(True)

    if audience == AUDIENCE_ENGAGED:
        cutoff = now - timedelta(days=settings.engaged_window_days)
        return and_(is_active, NewsletterSubscriber.campaigns.any(NewsletterCampaignRecipient.opened_at >= cutoff))
    if audience == AUDIENCE_INACTIVE:
        cutoff = now - timedelta(days=settings.engaged_window_days)
        return and_(is_active, ~NewsletterSubscriber.campaigns.any(NewsletterCampaignRecipient.opened_at >= cutoff))
    if audience == AUDIENCE_NEW:
        cutoff = now - timedelta(days=settings.new_subscriber_window_days)
        return and_(is_active, NewsletterSubscriber.created_at >= cutoff)
    return is_active


def audience_query(audience_type: Optional[str], now: Optional[datetime] = None) -> Select:
    """Select (id, email, name) of the subscribers a campaign should reach."""
    return (
        select(NewsletterSubscriber.id, NewsletterSubscriber.email, NewsletterSubscriber.name)
        .where(audience_filter(audience_type, now))
        .order_by(NewsletterSubscriber.id)
    )
