"""Open, click and unsubscribe recording for newsletter emails."""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from badcompany.errors import NotFoundError
from badcompany.models.newsletter import (
    NewsletterCampaign,
    NewsletterCampaignRecipient,
    NewsletterLinkClick,
    NewsletterSubscriber,
    NewsletterUnsubscribe,
)
from badcompany.services.base import RetryingService

logger = logging.getLogger(__name__)

DEFAULT_UNSUBSCRIBE_REASON = "user_request"


class TrackingService(RetryingService):
    """Records engagement events against recipient rows and campaign counters."""

    async def record_open(self, campaign_id: int, subscriber_id: int) -> bool:
        """Stamp the first open of a recipient and count it once.

        The check for an earlier open and the write are one conditional
        UPDATE, so concurrent pixel hits for the same recipient cannot both
        increment the campaign counter. Returns True when this call was the
        first open.
        """
        async def mark_opened(session: AsyncSession) -> bool:
            result = await session.execute(
                update(NewsletterCampaignRecipient)
                .where(
                    NewsletterCampaignRecipient.campaign_id == campaign_id,
                    NewsletterCampaignRecipient.subscriber_id == subscriber_id,
                    NewsletterCampaignRecipient.opened_at.is_(None),
                )
                .values(opened_at=datetime.now(timezone.utc))
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

        first_open = await self._persist("mark_recipient_opened", mark_opened)
        if not first_open:
            return False

        async def increment_opened(session: AsyncSession) -> None:
            await session.execute(
                update(NewsletterCampaign)
                .where(NewsletterCampaign.id == campaign_id)
                .values(opened=NewsletterCampaign.opened + 1)
                .execution_options(synchronize_session=False)
            )

        await self._persist("increment_campaign_opened", increment_opened)
        return True

    async def record_click(self, campaign_id: int, subscriber_id: int, url: str) -> None:
        """Record a click. Every call counts; clicked_at keeps the latest click."""
        now = datetime.now(timezone.utc)

        async def mark_clicked(session: AsyncSession) -> None:
            await session.execute(
                update(NewsletterCampaignRecipient)
                .where(
                    NewsletterCampaignRecipient.campaign_id == campaign_id,
                    NewsletterCampaignRecipient.subscriber_id == subscriber_id,
                )
                .values(clicked_at=now)
                .execution_options(synchronize_session=False)
            )

        async def increment_clicked(session: AsyncSession) -> None:
            await session.execute(
                update(NewsletterCampaign)
                .where(NewsletterCampaign.id == campaign_id)
                .values(clicked=NewsletterCampaign.clicked + 1)
                .execution_options(synchronize_session=False)
            )

        async def log_click(session: AsyncSession) -> None:
            session.add(
                NewsletterLinkClick(
                    campaign_id=campaign_id,
                    subscriber_id=subscriber_id,
                    url=url,
                    clicked_at=now,
                )
            )

        await self._persist("mark_recipient_clicked", mark_clicked)
        await self._persist("increment_campaign_clicked", increment_clicked)
        await self._persist("log_link_click", log_click)

    async def unsubscribe(
        self,
        subscriber_id: int,
        campaign_id: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> None:
        """Deactivate a subscriber and, when a campaign is known, log the event.

        Repeating the call for an inactive subscriber is harmless.
        """
        reason = reason or DEFAULT_UNSUBSCRIBE_REASON
        now = datetime.now(timezone.utc)

        async def deactivate(session: AsyncSession) -> None:
            subscriber = await session.get(NewsletterSubscriber, subscriber_id)
            if subscriber is None:
                raise NotFoundError("Assinante não encontrado")
            subscriber.active = False
            subscriber.unsubscribed_at = now
            subscriber.unsubscribe_reason = reason

        await self._persist("deactivate_subscriber", deactivate)

        if campaign_id is not None:
            async def log_unsubscribe(session: AsyncSession) -> None:
                session.add(
                    NewsletterUnsubscribe(
                        subscriber_id=subscriber_id,
                        campaign_id=campaign_id,
                        reason=reason,
                        unsubscribed_at=now,
                    )
                )

            await self._persist("log_unsubscribe", log_unsubscribe)
