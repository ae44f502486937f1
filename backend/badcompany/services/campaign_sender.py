"""Newsletter campaign composition and delivery."""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Sequence

from sqlalchemy import exists, func, select, update
from sqlalchemy.engine import Row
from sqlalchemy.ext.asyncio import AsyncSession

from badcompany.config import Settings, get_settings
from badcompany.database import SessionFactory
from badcompany.errors import NoRecipientsError, NotFoundError, ValidationError
from badcompany.metrics import NEWSLETTER_EMAILS_FAILED, NEWSLETTER_EMAILS_SENT
from badcompany.models.newsletter import (
    NewsletterCampaign,
    NewsletterCampaignRecipient,
    NewsletterSubscriber,
)
from badcompany.services.base import RetryingService
from badcompany.services.email_service import EmailService, _redact_email, email_service
from badcompany.services.newsletter_content import render_campaign_html, unsubscribe_url
from badcompany.services.segmentation import audience_query, normalize_audience_type
from badcompany.utils.retry import RetryPolicy

logger = logging.getLogger(__name__)

STATUS_SENDING = "sending"
STATUS_SENT = "sent"


@dataclass
class CampaignSendResult:
    campaign_id: int
    success_count: int
    failure_count: int

    @property
    def message(self) -> str:
        return (
            f"Newsletter enviada com sucesso para {self.success_count} assinantes. "
            f"Falhas: {self.failure_count}."
        )


class CampaignSender(RetryingService):
    """Sends a campaign to a resolved audience, one recipient at a time.

    Every database call is its own short transaction wrapped in the retry
    policy. A failure for one subscriber is logged and counted, and the loop
    moves on to the next one.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        mailer: Optional[EmailService] = None,
        policy: Optional[RetryPolicy] = None,
        settings: Optional[Settings] = None,
    ):
        super().__init__(session_factory, policy)
        self.mailer = mailer or email_service
        self.settings = settings or get_settings()

    async def send_campaign(
        self,
        subject: Optional[str],
        content: Optional[str],
        preview: Optional[str] = None,
        audience_type: Optional[str] = None,
    ) -> CampaignSendResult:
        if not subject or not subject.strip() or not content or not content.strip():
            raise ValidationError("Assunto e conteúdo são obrigatórios")

        audience = normalize_audience_type(audience_type)

        async def load_audience(session: AsyncSession) -> Sequence[Row]:
            result = await session.execute(audience_query(audience))
            return result.all()

        subscribers = await self._persist("load_audience", load_audience)
        if not subscribers:
            raise NoRecipientsError("Nenhum assinante corresponde à audiência selecionada")

        async def create_campaign(session: AsyncSession) -> NewsletterCampaign:
            now = datetime.now(timezone.utc)
            campaign = NewsletterCampaign(
                title=subject,
                subject=subject,
                content=content,
                preview=preview,
                audience_type=audience,
                status=STATUS_SENDING,
                sent_at=now,
                total_recipients=len(subscribers),
                opened=0,
                clicked=0,
            )
            session.add(campaign)
            await session.flush()
            return campaign

        campaign = await self._persist("create_campaign", create_campaign)
        logger.info(
            f"Campaign {campaign.id} created for audience '{audience}' with {len(subscribers)} subscribers"
        )

        success_count, failure_count = await self._deliver(campaign, subscribers)
        await self._finalize(campaign.id)

        logger.info(f"Campaign {campaign.id} sent: {success_count} delivered, {failure_count} failed")
        return CampaignSendResult(campaign.id, success_count, failure_count)

    async def resume_campaign(self, campaign_id: int) -> CampaignSendResult:
        """Send a campaign to audience members that have no recipient row yet.

        Subscribers already recorded for the campaign are skipped, so an
        interrupted send can be restarted without mailing anyone twice.
        """
        async def load_campaign(session: AsyncSession) -> Optional[NewsletterCampaign]:
            campaign = await session.get(NewsletterCampaign, campaign_id)
            if campaign is not None:
                campaign.status = STATUS_SENDING
            return campaign

        campaign = await self._persist("load_campaign", load_campaign)
        if campaign is None:
            raise NotFoundError("Campanha não encontrada")

        already_sent = exists().where(
            NewsletterCampaignRecipient.campaign_id == campaign_id,
            NewsletterCampaignRecipient.subscriber_id == NewsletterSubscriber.id,
        )

        async def load_pending(session: AsyncSession) -> Sequence[Row]:
            result = await session.execute(audience_query(campaign.audience_type).where(~already_sent))
            return result.all()

        pending = await self._persist("load_pending_recipients", load_pending)
        logger.info(f"Resuming campaign {campaign_id}: {len(pending)} subscribers still pending")

        success_count, failure_count = await self._deliver(campaign, pending)
        await self._finalize(campaign_id)
        return CampaignSendResult(campaign_id, success_count, failure_count)

    async def _deliver(self, campaign: NewsletterCampaign, subscribers: Sequence[Row]) -> tuple[int, int]:
        success_count = 0
        failure_count = 0
        text = campaign.preview or campaign.subject

        for subscriber in subscribers:
            try:
                html = render_campaign_html(
                    campaign.content,
                    site_url=self.settings.site_url,
                    campaign_id=campaign.id,
                    subscriber_id=subscriber.id,
                    subscriber_name=subscriber.name,
                    name_fallback=self.settings.newsletter_name_fallback,
                )
                headers = {
                    "X-Campaign-ID": str(campaign.id),
                    "List-Unsubscribe": f"<{unsubscribe_url(self.settings.site_url, campaign.id, subscriber.id)}>",
                }
                sent = await self.mailer.send_campaign_email(
                    to=subscriber.email,
                    subject=campaign.subject,
                    html=html,
                    text=text,
                    headers=headers,
                )
                if not sent:
                    logger.warning(
                        f"Campaign {campaign.id}: mail server refused {_redact_email(subscriber.email)}"
                    )
                    failure_count += 1
                    NEWSLETTER_EMAILS_FAILED.inc()
                    continue

                await self._record_recipient(campaign.id, subscriber.id)
                success_count += 1
                NEWSLETTER_EMAILS_SENT.inc()
            except Exception as e:
                # One bad address must not abort the batch
                logger.error(
                    f"Campaign {campaign.id}: failed to send to {_redact_email(subscriber.email)}: "
                    f"{type(e).__name__}: {e}"
                )
                failure_count += 1
                NEWSLETTER_EMAILS_FAILED.inc()

        return success_count, failure_count

    async def _record_recipient(self, campaign_id: int, subscriber_id: int) -> None:
        async def create_recipient(session: AsyncSession) -> None:
            session.add(
                NewsletterCampaignRecipient(
                    campaign_id=campaign_id,
                    subscriber_id=subscriber_id,
                    sent_at=datetime.now(timezone.utc),
                )
            )

        await self._persist("create_recipient", create_recipient)

    async def _finalize(self, campaign_id: int) -> None:
        """Mark the campaign sent; its recipient total becomes the delivered count."""
        async def finalize(session: AsyncSession) -> None:
            delivered = await session.scalar(
                select(func.count())
                .select_from(NewsletterCampaignRecipient)
                .where(NewsletterCampaignRecipient.campaign_id == campaign_id)
            )
            await session.execute(
                update(NewsletterCampaign)
                .where(NewsletterCampaign.id == campaign_id)
                .values(
                    status=STATUS_SENT,
                    total_recipients=delivered or 0,
                    updated_at=datetime.now(timezone.utc),
                )
                .execution_options(synchronize_session=False)
            )

        await self._persist("finalize_campaign", finalize)
