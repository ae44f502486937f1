"""Public newsletter signup."""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from badcompany.models.newsletter import NewsletterSubscriber
from badcompany.services.base import RetryingService
from badcompany.services.email_service import _redact_email

logger = logging.getLogger(__name__)

DEFAULT_SIGNUP_SOURCE = "website"


@dataclass
class SignupResult:
    email: str
    created: bool
    reactivated: bool

    @property
    def already_active(self) -> bool:
        return not self.created and not self.reactivated


class SubscriberService(RetryingService):

    async def subscribe(self, email: str, name: Optional[str] = None, source: Optional[str] = None) -> SignupResult:
        """Create a subscriber or reactivate one that had unsubscribed.

        Reactivation clears the unsubscribe timestamp and reason. Calling this
        for an already active address changes nothing.
        """
        email = email.strip().lower()

        async def upsert(session: AsyncSession) -> SignupResult:
            result = await session.execute(select(NewsletterSubscriber).where(NewsletterSubscriber.email == email))
            existing = result.scalars().first()
            if existing is None:
                session.add(
                    NewsletterSubscriber(
                        email=email,
                        name=name,
                        source=source or DEFAULT_SIGNUP_SOURCE,
                        active=True,
                    )
                )
                return SignupResult(email=email, created=True, reactivated=False)

            if existing.active:
                return SignupResult(email=email, created=False, reactivated=False)

            existing.active = True
            existing.unsubscribed_at = None
            existing.unsubscribe_reason = None
            existing.updated_at = datetime.now(timezone.utc)
            if name:
                existing.name = name
            return SignupResult(email=email, created=False, reactivated=True)

        outcome = await self._persist("subscribe", upsert)
        if not outcome.already_active:
            logger.info(
                f"Newsletter subscription for {_redact_email(email)} "
                f"({'new' if outcome.created else 'reactivated'})"
            )
        return outcome
