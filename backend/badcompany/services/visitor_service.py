"""Anonymous visitor counter for the public site."""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from badcompany.errors import ValidationError
from badcompany.models.visitor import Visitor
from badcompany.services.base import RetryingService

logger = logging.getLogger(__name__)

UNKNOWN_USER_AGENT = "Unknown"


class VisitorService(RetryingService):

    async def record_visit(self, visitor_id: Optional[str], user_agent: Optional[str] = None) -> str:
        """Insert a visitor on first sight, otherwise bump its visit count."""
        visitor_id = (visitor_id or "").strip()
        if not visitor_id:
            raise ValidationError("ID do visitante é obrigatório")

        async def upsert(session: AsyncSession) -> str:
            now = datetime.now(timezone.utc)
            result = await session.execute(select(Visitor).where(Visitor.visitor_id == visitor_id))
            visitor = result.scalars().first()
            if visitor is None:
                session.add(
                    Visitor(
                        visitor_id=visitor_id,
                        user_agent=(user_agent or UNKNOWN_USER_AGENT)[:512],
                        first_visit=now,
                        last_visit=now,
                        visit_count=1,
                    )
                )
            else:
                visitor.visit_count = Visitor.visit_count + 1
                visitor.last_visit = now
            return visitor_id

        return await self._persist("record_visit", upsert)

    async def total_visits(self) -> int:
        async def load(session: AsyncSession) -> int:
            return await session.scalar(select(func.coalesce(func.sum(Visitor.visit_count), 0))) or 0

        return await self._persist("total_visits", load)

    async def unique_devices(self) -> int:
        async def load(session: AsyncSession) -> int:
            return await session.scalar(select(func.count()).select_from(Visitor)) or 0

        return await self._persist("unique_devices", load)
