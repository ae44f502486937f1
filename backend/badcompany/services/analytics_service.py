"""Newsletter reporting: campaign rates, subscriber stats and counter reconciliation."""
import calendar
import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from badcompany.errors import NotFoundError
from badcompany.models.newsletter import (
    NewsletterCampaign,
    NewsletterCampaignRecipient,
    NewsletterLinkClick,
    NewsletterSubscriber,
    NewsletterUnsubscribe,
)
from badcompany.schemas.newsletter import (
    CampaignAnalyticsResponse,
    CampaignListItem,
    CampaignStats,
    CampaignSummary,
    NewsletterSubscriberRead,
    Pagination,
    SubscriberListResponse,
    SubscriberStats,
)
from badcompany.services.base import RetryingService

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
RECENT_WINDOW_DAYS = 30


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _shift_months(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def timeframe_start(timeframe: Optional[str], now: Optional[datetime] = None) -> datetime:
    """Lower bound of ``sent_at`` for a reporting timeframe.

    Unknown or missing timeframes cover all time.
    """
    now = now or datetime.now(timezone.utc)
    if timeframe == "day":
        return now - timedelta(days=1)
    if timeframe == "week":
        return now - timedelta(days=7)
    if timeframe == "month":
        return _shift_months(now, -1)
    if timeframe == "year":
        return _shift_months(now, -12)
    return EPOCH


def format_rate(numerator: int, denominator: int) -> str:
    """Percentage with two decimals, "0.00" when the denominator is zero."""
    if denominator <= 0:
        return "0.00"
    return f"{numerator / denominator * 100:.2f}"


def compute_campaign_stats(recipients: Sequence[NewsletterCampaignRecipient]) -> CampaignStats:
    total_sent = len(recipients)
    total_opened = sum(1 for r in recipients if r.opened_at is not None)
    total_clicked = sum(1 for r in recipients if r.clicked_at is not None)

    open_hours = [
        (_as_utc(r.opened_at) - _as_utc(r.sent_at)).total_seconds() / 3600
        for r in recipients
        if r.opened_at is not None and r.sent_at is not None
    ]
    avg_time_to_open = "0.0"
    if open_hours:
        avg = sum(open_hours) / len(open_hours)
        if not math.isnan(avg):
            avg_time_to_open = f"{avg:.1f}"

    return CampaignStats(
        total_sent=total_sent,
        total_opened=total_opened,
        total_clicked=total_clicked,
        open_rate=format_rate(total_opened, total_sent),
        click_rate=format_rate(total_clicked, total_opened),
        avg_time_to_open=avg_time_to_open,
    )


class AnalyticsService(RetryingService):
    """Read-side queries behind the newsletter dashboard."""

    async def campaign_analytics(
        self,
        campaign_id: int,
        timeframe: Optional[str],
        now: Optional[datetime] = None,
    ) -> CampaignAnalyticsResponse:
        start = timeframe_start(timeframe, now)

        async def load(session: AsyncSession):
            campaign = await session.get(NewsletterCampaign, campaign_id)
            if campaign is None:
                return None, []
            result = await session.execute(
                select(NewsletterCampaignRecipient).where(
                    NewsletterCampaignRecipient.campaign_id == campaign_id,
                    NewsletterCampaignRecipient.sent_at >= start,
                )
            )
            return campaign, result.scalars().all()

        campaign, recipients = await self._persist("load_campaign_recipients", load)
        if campaign is None:
            raise NotFoundError("Campanha não encontrada")

        return CampaignAnalyticsResponse(
            campaign=CampaignSummary(
                id=campaign.id,
                title=campaign.title,
                sent_at=campaign.sent_at or datetime.now(timezone.utc),
                status=campaign.status,
            ),
            stats=compute_campaign_stats(recipients),
            timeframe=timeframe,
        )

    async def list_campaigns(self) -> list[CampaignListItem]:
        recipient_count = (
            select(func.count())
            .select_from(NewsletterCampaignRecipient)
            .where(
                NewsletterCampaignRecipient.campaign_id == NewsletterCampaign.id,
                NewsletterCampaignRecipient.sent_at.is_not(None),
            )
            .scalar_subquery()
        )

        async def load(session: AsyncSession):
            result = await session.execute(
                select(NewsletterCampaign, recipient_count.label("recipient_count"))
                .order_by(NewsletterCampaign.sent_at.desc(), NewsletterCampaign.id.desc())
            )
            return result.all()

        rows = await self._persist("list_campaigns", load)
        campaigns = []
        for campaign, counted in rows:
            total = campaign.total_recipients or counted or 0
            opened = campaign.opened or 0
            clicked = campaign.clicked or 0
            campaigns.append(
                CampaignListItem(
                    id=campaign.id,
                    title=campaign.title,
                    sent_at=campaign.sent_at or datetime.now(timezone.utc),
                    status=campaign.status,
                    total_recipients=total,
                    opened=opened,
                    clicked=clicked,
                    open_rate=format_rate(opened, total),
                    click_rate=format_rate(clicked, opened),
                )
            )
        return campaigns

    async def subscriber_stats(self, now: Optional[datetime] = None) -> SubscriberStats:
        now = now or datetime.now(timezone.utc)
        since = now - timedelta(days=RECENT_WINDOW_DAYS)

        async def load(session: AsyncSession):
            total = await session.scalar(
                select(func.count()).select_from(NewsletterSubscriber).where(NewsletterSubscriber.active.is_(True))
            )
            recent = await session.scalar(
                select(func.count())
                .select_from(NewsletterSubscriber)
                .where(NewsletterSubscriber.active.is_(True), NewsletterSubscriber.created_at >= since)
            )
            unsubscribed = await session.scalar(
                select(func.count())
                .select_from(NewsletterUnsubscribe)
                .where(NewsletterUnsubscribe.unsubscribed_at >= since)
            )
            return total or 0, recent or 0, unsubscribed or 0

        total, recent, unsubscribed = await self._persist("subscriber_stats", load)
        return SubscriberStats(
            total_subscribers=total,
            recent_subscribers=recent,
            unsubscribed_recently=unsubscribed,
            active_ratio=format_rate(total, total + unsubscribed),
        )

    async def list_subscribers(
        self,
        page: int = 1,
        page_size: int = 10,
        active: Optional[bool] = None,
        source: Optional[str] = None,
    ) -> tuple[list[NewsletterSubscriberRead], Pagination]:
        filters = []
        if active is not None:
            filters.append(NewsletterSubscriber.active.is_(active))
        if source:
            filters.append(NewsletterSubscriber.source.contains(source))

        async def load(session: AsyncSession):
            result = await session.execute(
                select(NewsletterSubscriber)
                .where(*filters)
                .order_by(NewsletterSubscriber.created_at.desc(), NewsletterSubscriber.id.desc())
                .offset((page - 1) * page_size)
                .limit(page_size)
            )
            total = await session.scalar(select(func.count()).select_from(NewsletterSubscriber).where(*filters))
            return result.scalars().all(), total or 0

        subscribers, total = await self._persist("list_subscribers", load)
        pagination = Pagination(
            total=total,
            page=page,
            page_size=page_size,
            total_pages=math.ceil(total / page_size) if page_size else 0,
        )
        return [NewsletterSubscriberRead.model_validate(s) for s in subscribers], pagination

    async def subscriber_overview(
        self,
        page: int = 1,
        page_size: int = 10,
        active: Optional[bool] = None,
        source: Optional[str] = None,
    ) -> SubscriberListResponse:
        stats = await self.subscriber_stats()
        subscribers, pagination = await self.list_subscribers(page, page_size, active, source)
        return SubscriberListResponse(stats=stats, subscribers=subscribers, pagination=pagination)

    async def reconcile_campaign_counters(self, campaign_id: Optional[int] = None) -> int:
        """Recompute ``opened``/``clicked`` from recipient rows and the click log.

        ``opened`` counts recipients with an open; ``clicked`` counts LinkClick
        rows, since every click increments it. Returns how many campaigns had
        drifted and were corrected.
        """
        opened_actual = (
            select(func.count())
            .select_from(NewsletterCampaignRecipient)
            .where(
                NewsletterCampaignRecipient.campaign_id == NewsletterCampaign.id,
                NewsletterCampaignRecipient.opened_at.is_not(None),
            )
            .scalar_subquery()
        )
        clicked_actual = (
            select(func.count())
            .select_from(NewsletterLinkClick)
            .where(NewsletterLinkClick.campaign_id == NewsletterCampaign.id)
            .scalar_subquery()
        )

        async def reconcile(session: AsyncSession) -> int:
            query = select(
                NewsletterCampaign.id,
                NewsletterCampaign.opened,
                NewsletterCampaign.clicked,
                opened_actual.label("opened_actual"),
                clicked_actual.label("clicked_actual"),
            )
            if campaign_id is not None:
                query = query.where(NewsletterCampaign.id == campaign_id)
            rows = (await session.execute(query)).all()
            if campaign_id is not None and not rows:
                raise NotFoundError("Campanha não encontrada")

            corrected = 0
            for row in rows:
                if row.opened == row.opened_actual and row.clicked == row.clicked_actual:
                    continue
                logger.warning(
                    f"Campaign {row.id} counters drifted: opened {row.opened} -> {row.opened_actual}, "
                    f"clicked {row.clicked} -> {row.clicked_actual}"
                )
                await session.execute(
                    update(NewsletterCampaign)
                    .where(NewsletterCampaign.id == row.id)
                    .values(opened=row.opened_actual, clicked=row.clicked_actual)
                    .execution_options(synchronize_session=False)
                )
                corrected += 1
            return corrected

        return await self._persist("reconcile_campaign_counters", reconcile)
