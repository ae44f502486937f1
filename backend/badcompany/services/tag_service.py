"""Subscriber tags: the dashboard's manual grouping of newsletter subscribers."""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from badcompany.config import get_settings
from badcompany.errors import ConflictError, NotFoundError, ValidationError
from badcompany.models.newsletter import NewsletterSubscriber, NewsletterSubscriberTag, NewsletterTag
from badcompany.schemas.newsletter import SubscriberTagRead, TagRead
from badcompany.services.base import RetryingService

logger = logging.getLogger(__name__)


class TagService(RetryingService):

    async def list_tags(self) -> list[TagRead]:
        subscriber_count = (
            select(func.count())
            .select_from(NewsletterSubscriberTag)
            .where(NewsletterSubscriberTag.tag_id == NewsletterTag.id)
            .scalar_subquery()
        )

        async def load(session: AsyncSession):
            result = await session.execute(
                select(NewsletterTag, subscriber_count.label("subscriber_count")).order_by(NewsletterTag.name)
            )
            return result.all()

        rows = await self._persist("list_tags", load)
        return [
            TagRead(
                id=tag.id,
                name=tag.name,
                color=tag.color,
                description=tag.description,
                subscriber_count=count or 0,
            )
            for tag, count in rows
        ]

    async def create_tag(self, name: Optional[str], color: Optional[str] = None, description: Optional[str] = None) -> TagRead:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Nome da tag é obrigatório")

        async def create(session: AsyncSession) -> NewsletterTag:
            existing = await session.scalar(select(NewsletterTag.id).where(NewsletterTag.name == name))
            if existing is not None:
                raise ConflictError("Já existe uma tag com este nome")
            tag = NewsletterTag(
                name=name,
                color=color or get_settings().default_tag_color,
                description=description,
            )
            session.add(tag)
            await session.flush()
            return tag

        tag = await self._persist("create_tag", create)
        logger.info(f"Tag {tag.id} '{tag.name}' created")
        return TagRead(id=tag.id, name=tag.name, color=tag.color, description=tag.description, subscriber_count=0)

    async def subscriber_tags(self, subscriber_id: int) -> list[SubscriberTagRead]:
        async def load(session: AsyncSession):
            if await session.get(NewsletterSubscriber, subscriber_id) is None:
                raise NotFoundError("Assinante não encontrado")
            result = await session.execute(
                select(NewsletterTag, NewsletterSubscriberTag.added_at)
                .join(NewsletterSubscriberTag, NewsletterSubscriberTag.tag_id == NewsletterTag.id)
                .where(NewsletterSubscriberTag.subscriber_id == subscriber_id)
                .order_by(NewsletterTag.name)
            )
            return result.all()

        rows = await self._persist("list_subscriber_tags", load)
        return [SubscriberTagRead(id=tag.id, name=tag.name, color=tag.color, added_at=added_at) for tag, added_at in rows]

    async def add_tag(self, subscriber_id: int, tag_id: Optional[int]) -> SubscriberTagRead:
        if tag_id is None:
            raise ValidationError("ID da tag é obrigatório")

        async def add(session: AsyncSession) -> SubscriberTagRead:
            if await session.get(NewsletterSubscriber, subscriber_id) is None:
                raise NotFoundError("Assinante não encontrado")
            tag = await session.get(NewsletterTag, tag_id)
            if tag is None:
                raise NotFoundError("Tag não encontrada")
            if await session.get(NewsletterSubscriberTag, (subscriber_id, tag_id)) is not None:
                raise ConflictError("O assinante já tem esta tag")
            link = NewsletterSubscriberTag(
                subscriber_id=subscriber_id, tag_id=tag_id, added_at=datetime.now(timezone.utc)
            )
            session.add(link)
            await session.flush()
            return SubscriberTagRead(id=tag.id, name=tag.name, color=tag.color, added_at=link.added_at)

        return await self._persist("add_subscriber_tag", add)

    async def remove_tag(self, subscriber_id: int, tag_id: Optional[int]) -> None:
        if tag_id is None:
            raise ValidationError("ID da tag é obrigatório")

        async def remove(session: AsyncSession) -> None:
            link = await session.get(NewsletterSubscriberTag, (subscriber_id, tag_id))
            if link is None:
                raise NotFoundError("Associação não encontrada")
            await session.delete(link)

        await self._persist("remove_subscriber_tag", remove)
