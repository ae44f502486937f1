from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from badcompany.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NewsletterSubscriber(Base):
    __tablename__ = "newsletter_subscribers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)
    active = Column(Boolean, default=True, nullable=False, index=True)
    source = Column(String(100), nullable=True)  # acquisition channel, e.g. "CSV Import"
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
    unsubscribed_at = Column(DateTime(timezone=True), nullable=True)
    unsubscribe_reason = Column(String(255), nullable=True)

    tags = relationship("NewsletterSubscriberTag", back_populates="subscriber", cascade="all, delete-orphan")
    campaigns = relationship("NewsletterCampaignRecipient", back_populates="subscriber")

    def __repr__(self) -> str:
        return f"<NewsletterSubscriber {self.id} active={self.active}>"


class NewsletterTag(Base):
    __tablename__ = "newsletter_tags"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False)
    color = Column(String(20), nullable=False, default="#6366F1")
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    subscribers = relationship("NewsletterSubscriberTag", back_populates="tag", cascade="all, delete-orphan")


class NewsletterSubscriberTag(Base):
    __tablename__ = "newsletter_subscriber_tags"

    subscriber_id = Column(
        Integer, ForeignKey("newsletter_subscribers.id", ondelete="CASCADE"), primary_key=True
    )
    tag_id = Column(Integer, ForeignKey("newsletter_tags.id", ondelete="CASCADE"), primary_key=True)
    added_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    subscriber = relationship("NewsletterSubscriber", back_populates="tags")
    tag = relationship("NewsletterTag", back_populates="subscribers")


class NewsletterCampaign(Base):
    __tablename__ = "newsletter_campaigns"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    subject = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)  # HTML with {{name}} placeholder
    preview = Column(Text, nullable=True)  # plain-text alternative
    audience_type = Column(String(20), nullable=False, default="all")
    status = Column(String(20), nullable=False, default="sending")  # sending -> sent
    sent_at = Column(DateTime(timezone=True), nullable=True, index=True)
    total_recipients = Column(Integer, nullable=False, default=0)
    opened = Column(Integer, nullable=False, default=0)
    clicked = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    recipients = relationship("NewsletterCampaignRecipient", back_populates="campaign")


class NewsletterCampaignRecipient(Base):
    __tablename__ = "newsletter_campaign_recipients"

    id = Column(Integer, primary_key=True, autoincrement=True)
    campaign_id = Column(
        Integer, ForeignKey("newsletter_campaigns.id", ondelete="CASCADE"), nullable=False
    )
    subscriber_id = Column(
        Integer, ForeignKey("newsletter_subscribers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sent_at = Column(DateTime(timezone=True), nullable=True)
    opened_at = Column(DateTime(timezone=True), nullable=True)
    clicked_at = Column(DateTime(timezone=True), nullable=True)

    campaign = relationship("NewsletterCampaign", back_populates="recipients")
    subscriber = relationship("NewsletterSubscriber", back_populates="campaigns")

    __table_args__ = (
        UniqueConstraint("campaign_id", "subscriber_id", name="uq_campaign_recipient"),
        Index("ix_campaign_recipients_campaign_sent", "campaign_id", "sent_at"),
    )


class NewsletterLinkClick(Base):
    __tablename__ = "newsletter_link_clicks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    campaign_id = Column(
        Integer, ForeignKey("newsletter_campaigns.id", ondelete="CASCADE"), nullable=False, index=True
    )
    subscriber_id = Column(
        Integer, ForeignKey("newsletter_subscribers.id", ondelete="CASCADE"), nullable=False
    )
    url = Column(Text, nullable=False)
    clicked_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class NewsletterUnsubscribe(Base):
    __tablename__ = "newsletter_unsubscribes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    subscriber_id = Column(
        Integer, ForeignKey("newsletter_subscribers.id", ondelete="CASCADE"), nullable=False
    )
    campaign_id = Column(
        Integer, ForeignKey("newsletter_campaigns.id", ondelete="SET NULL"), nullable=True
    )
    reason = Column(String(255), nullable=True)
    unsubscribed_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)
