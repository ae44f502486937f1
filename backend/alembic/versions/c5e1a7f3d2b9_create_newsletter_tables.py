"""Create newsletter and visitor tables

Revision ID: c5e1a7f3d2b9
Revises:
Create Date: 2026-10-19 10:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "c5e1a7f3d2b9"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "newsletter_subscribers",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("source", sa.String(length=100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("unsubscribed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("unsubscribe_reason", sa.String(length=255), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_newsletter_subscribers_email"), "newsletter_subscribers", ["email"], unique=True)
    op.create_index(op.f("ix_newsletter_subscribers_active"), "newsletter_subscribers", ["active"], unique=False)
    op.create_index(op.f("ix_newsletter_subscribers_created_at"), "newsletter_subscribers", ["created_at"], unique=False)

    op.create_table(
        "newsletter_tags",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("color", sa.String(length=20), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "newsletter_subscriber_tags",
        sa.Column("subscriber_id", sa.Integer(), nullable=False),
        sa.Column("tag_id", sa.Integer(), nullable=False),
        sa.Column("added_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["subscriber_id"], ["newsletter_subscribers.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["tag_id"], ["newsletter_tags.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("subscriber_id", "tag_id"),
    )

    op.create_table(
        "newsletter_campaigns",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("subject", sa.String(length=255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("preview", sa.Text(), nullable=True),
        sa.Column("audience_type", sa.String(length=20), nullable=False, server_default="all"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="sending"),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("total_recipients", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("opened", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("clicked", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_newsletter_campaigns_sent_at"), "newsletter_campaigns", ["sent_at"], unique=False)

    op.create_table(
        "newsletter_campaign_recipients",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("campaign_id", sa.Integer(), nullable=False),
        sa.Column("subscriber_id", sa.Integer(), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("opened_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("clicked_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["campaign_id"], ["newsletter_campaigns.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["subscriber_id"], ["newsletter_subscribers.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("campaign_id", "subscriber_id", name="uq_campaign_recipient"),
    )
    op.create_index(
        op.f("ix_newsletter_campaign_recipients_subscriber_id"),
        "newsletter_campaign_recipients",
        ["subscriber_id"],
        unique=False,
    )
    op.create_index(
        "ix_campaign_recipients_campaign_sent",
        "newsletter_campaign_recipients",
        ["campaign_id", "sent_at"],
        unique=False,
    )

    op.create_table(
        "newsletter_link_clicks",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("campaign_id", sa.Integer(), nullable=False),
        sa.Column("subscriber_id", sa.Integer(), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("clicked_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["campaign_id"], ["newsletter_campaigns.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["subscriber_id"], ["newsletter_subscribers.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_newsletter_link_clicks_campaign_id"), "newsletter_link_clicks", ["campaign_id"], unique=False)

    op.create_table(
        "newsletter_unsubscribes",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("subscriber_id", sa.Integer(), nullable=False),
        sa.Column("campaign_id", sa.Integer(), nullable=True),
        sa.Column("reason", sa.String(length=255), nullable=True),
        sa.Column("unsubscribed_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["subscriber_id"], ["newsletter_subscribers.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["campaign_id"], ["newsletter_campaigns.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_newsletter_unsubscribes_unsubscribed_at"),
        "newsletter_unsubscribes",
        ["unsubscribed_at"],
        unique=False,
    )

    op.create_table(
        "visitors",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("visitor_id", sa.String(length=100), nullable=False),
        sa.Column("user_agent", sa.String(length=512), nullable=True),
        sa.Column("first_visit", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_visit", sa.DateTime(timezone=True), nullable=False),
        sa.Column("visit_count", sa.Integer(), nullable=False, server_default="1"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_visitors_visitor_id"), "visitors", ["visitor_id"], unique=True)


def downgrade() -> None:
    op.drop_index(op.f("ix_visitors_visitor_id"), table_name="visitors")
    op.drop_table("visitors")
    op.drop_index(op.f("ix_newsletter_unsubscribes_unsubscribed_at"), table_name="newsletter_unsubscribes")
    op.drop_table("newsletter_unsubscribes")
    op.drop_index(op.f("ix_newsletter_link_clicks_campaign_id"), table_name="newsletter_link_clicks")
    op.drop_table("newsletter_link_clicks")
    op.drop_index("ix_campaign_recipients_campaign_sent", table_name="newsletter_campaign_recipients")
    op.drop_index(op.f("ix_newsletter_campaign_recipients_subscriber_id"), table_name="newsletter_campaign_recipients")
    op.drop_table("newsletter_campaign_recipients")
    op.drop_index(op.f("ix_newsletter_campaigns_sent_at"), table_name="newsletter_campaigns")
    op.drop_table("newsletter_campaigns")
    op.drop_table("newsletter_subscriber_tags")
    op.drop_table("newsletter_tags")
    op.drop_index(op.f("ix_newsletter_subscribers_created_at"), table_name="newsletter_subscribers")
    op.drop_index(op.f("ix_newsletter_subscribers_active"), table_name="newsletter_subscribers")
    op.drop_index(op.f("ix_newsletter_subscribers_email"), table_name="newsletter_subscribers")
    op.drop_table("newsletter_subscribers")
