from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for payloads exchanged with the dashboard (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ---------------------------------------------------------------------------
# Campaign sending
# ---------------------------------------------------------------------------


class NewsletterSendRequest(CamelModel):
    # Required fields are checked by the sender so a missing subject is a 400, not a 422
    subject: Optional[str] = None
    content: Optional[str] = None
    preview: Optional[str] = None
    audience_type: Optional[str] = "all"


class NewsletterSendResponse(CamelModel):
    success: bool
    message: str
    campaign_id: int
    total_recipients: int
    failed: int


class NewsletterTestRequest(CamelModel):
    subject: Optional[str] = None
    content: Optional[str] = None
    preview: Optional[str] = None


class NewsletterTestResponse(CamelModel):
    success: bool
    message: str


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------


class CampaignAnalyticsRequest(CamelModel):
    campaign_id: Optional[int] = None
    timeframe: Optional[str] = None


class CampaignSummary(CamelModel):
    id: int
    title: str
    sent_at: datetime
    status: str


class CampaignStats(CamelModel):
    total_sent: int
    total_opened: int
    total_clicked: int
    open_rate: str
    click_rate: str
    avg_time_to_open: str


class CampaignAnalyticsResponse(CamelModel):
    campaign: CampaignSummary
    stats: CampaignStats
    timeframe: Optional[str] = None


class CampaignListItem(CamelModel):
    id: int
    title: str
    sent_at: datetime
    status: str
    total_recipients: int
    opened: int
    clicked: int
    open_rate: str
    click_rate: str


class ReconcileResponse(CamelModel):
    campaigns_updated: int


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------


class TagCreate(CamelModel):
    name: Optional[str] = None
    color: Optional[str] = None
    description: Optional[str] = None


class TagRead(CamelModel):
    id: int
    name: str
    color: str
    description: Optional[str] = None
    subscriber_count: int = 0


class SubscriberTagAdd(CamelModel):
    tag_id: Optional[int] = None


class SubscriberTagRead(CamelModel):
    id: int
    name: str
    color: str
    added_at: datetime


# ---------------------------------------------------------------------------
# Subscribers
# ---------------------------------------------------------------------------


class NewsletterSubscribeRequest(CamelModel):
    email: EmailStr
    name: Optional[str] = None
    source: Optional[str] = None


class NewsletterSubscribeResponse(CamelModel):
    message: str
    email: str


class NewsletterSubscriberRead(CamelModel):
    id: int
    email: str
    name: Optional[str] = None
    active: bool
    source: Optional[str] = None
    created_at: datetime
    unsubscribed_at: Optional[datetime] = None
    unsubscribe_reason: Optional[str] = None


class SubscriberStats(CamelModel):
    total_subscribers: int
    recent_subscribers: int
    unsubscribed_recently: int
    active_ratio: str


class Pagination(CamelModel):
    total: int
    page: int
    page_size: int
    total_pages: int


class SubscriberListResponse(CamelModel):
    stats: SubscriberStats
    subscribers: List[NewsletterSubscriberRead]
    pagination: Pagination


class ImportRowError(CamelModel):
    row: int
    email: str
    error: str


class ImportStats(CamelModel):
    total: int
    inserted: int
    updated: int
    failed: int


class ImportResponse(CamelModel):
    success: bool
    stats: ImportStats
    errors: Optional[List[ImportRowError]] = None
