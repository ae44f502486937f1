import pytest
from datetime import datetime, timezone
from httpx import AsyncClient, ASGITransport
from sqlalchemy import func, select

from badcompany.api.newsletter_tracking import TRANSPARENT_GIF
from badcompany.main import app
from badcompany.models.newsletter import (
    NewsletterCampaign,
    NewsletterCampaignRecipient,
    NewsletterLinkClick,
    NewsletterSubscriber,
    NewsletterUnsubscribe,
)


async def _sent_campaign(session_factory):
    """One campaign delivered to one subscriber; returns (campaign_id, subscriber_id)."""
    now = datetime.now(timezone.utc)
    async with session_factory() as session:
        subscriber = NewsletterSubscriber(email="ana@example.com", name="Ana")
        campaign = NewsletterCampaign(
            title="Festival", subject="Festival", content="<p>x</p>", status="sent", sent_at=now, total_recipients=1
        )
        session.add_all([subscriber, campaign])
        await session.flush()
        session.add(NewsletterCampaignRecipient(campaign_id=campaign.id, subscriber_id=subscriber.id, sent_at=now))
        await session.commit()
        return campaign.id, subscriber.id


async def _load(session_factory, campaign_id, subscriber_id):
    async with session_factory() as session:
        campaign = await session.get(NewsletterCampaign, campaign_id)
        recipient = (
            await session.execute(
                select(NewsletterCampaignRecipient).where(
                    NewsletterCampaignRecipient.campaign_id == campaign_id,
                    NewsletterCampaignRecipient.subscriber_id == subscriber_id,
                )
            )
        ).scalars().one()
        clicks = await session.scalar(select(func.count()).select_from(NewsletterLinkClick))
    return campaign, recipient, clicks


# ---------------------------------------------------------------------------
# Open pixel
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_open_is_counted_once(session_factory):
    cid, sid = await _sent_campaign(session_factory)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        first = await client.get(f"/api/newsletter-track-open?cid={cid}&sid={sid}")
        _, recipient, _ = await _load(session_factory, cid, sid)
        first_opened_at = recipient.opened_at
        second = await client.get(f"/api/newsletter-track-open?cid={cid}&sid={sid}")

    for response in (first, second):
        assert response.status_code == 200
        assert response.headers["content-type"] == "image/gif"
        assert response.content == TRANSPARENT_GIF
        assert "no-store" in response.headers["cache-control"]

    campaign, recipient, _ = await _load(session_factory, cid, sid)
    assert campaign.opened == 1
    assert recipient.opened_at == first_opened_at


@pytest.mark.asyncio
async def test_open_pixel_served_for_bad_ids(session_factory):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        missing = await client.get("/api/newsletter-track-open")
        malformed = await client.get("/api/newsletter-track-open?cid=abc&sid=-1")
        unknown = await client.get("/api/newsletter-track-open?cid=404&sid=404")

    for response in (missing, malformed, unknown):
        assert response.status_code == 200
        assert response.content == TRANSPARENT_GIF


@pytest.mark.asyncio
async def test_open_pixel_served_when_database_fails(session_factory):
    from unittest.mock import AsyncMock, patch

    with patch(
        "badcompany.api.newsletter_tracking.TrackingService.record_open",
        new_callable=AsyncMock,
        side_effect=ConnectionError("database unavailable"),
    ):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/api/newsletter-track-open?cid=1&sid=1")

    assert response.status_code == 200
    assert response.content == TRANSPARENT_GIF


# ---------------------------------------------------------------------------
# Click redirect
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_every_click_is_recorded(session_factory):
    cid, sid = await _sent_campaign(session_factory)
    target = "https://badcompany.pt/eventos?tipo=privados"

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        responses = [
            await client.get("/api/newsletter-track-click", params={"cid": cid, "sid": sid, "url": target})
            for _ in range(3)
        ]

    for response in responses:
        assert response.status_code == 307
        assert response.headers["location"] == target

    campaign, recipient, clicks = await _load(session_factory, cid, sid)
    assert campaign.clicked == 3
    assert clicks == 3
    assert recipient.clicked_at is not None


@pytest.mark.asyncio
async def test_click_without_ids_redirects_without_recording(session_factory):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        no_ids = await client.get("/api/newsletter-track-click", params={"url": "https://badcompany.pt"})
        no_url = await client.get("/api/newsletter-track-click", params={"cid": 1, "sid": 1})

    assert no_ids.headers["location"] == "https://badcompany.pt"
    assert no_url.headers["location"] == "https://badcompany.test/"
    async with session_factory() as session:
        assert await session.scalar(select(func.count()).select_from(NewsletterLinkClick)) == 0


# ---------------------------------------------------------------------------
# Unsubscribe
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_unsubscribe_is_idempotent(session_factory):
    cid, sid = await _sent_campaign(session_factory)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        first = await client.get(f"/api/newsletter-unsubscribe?sid={sid}&cid={cid}&reason=too_many")
        second = await client.get(f"/api/newsletter-unsubscribe?sid={sid}")

    for response in (first, second):
        assert response.status_code == 307
        assert response.headers["location"] == "https://badcompany.test/newsletter/unsubscribed"

    async with session_factory() as session:
        subscriber = await session.get(NewsletterSubscriber, sid)
        events = (await session.execute(select(NewsletterUnsubscribe))).scalars().all()
    assert subscriber.active is False
    assert subscriber.unsubscribed_at is not None
    assert subscriber.unsubscribe_reason == "user_request"
    assert [(e.campaign_id, e.reason) for e in events] == [(cid, "too_many")]


@pytest.mark.asyncio
async def test_unsubscribe_errors_redirect_home(session_factory):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        missing = await client.get("/api/newsletter-unsubscribe")
        unknown = await client.get("/api/newsletter-unsubscribe?sid=999")

    assert missing.headers["location"] == "https://badcompany.test/"
    assert unknown.headers["location"] == "https://badcompany.test/"


@pytest.mark.asyncio
async def test_concurrent_opens_count_once(session_factory):
    import asyncio

    from badcompany.services.tracking_service import TrackingService

    cid, sid = await _sent_campaign(session_factory)
    service = TrackingService(session_factory)

    outcomes = await asyncio.gather(*(service.record_open(cid, sid) for _ in range(5)))

    assert sorted(outcomes) == [False, False, False, False, True]
    campaign, _, _ = await _load(session_factory, cid, sid)
    assert campaign.opened == 1


@pytest.mark.asyncio
async def test_open_without_recipient_row_is_not_counted(session_factory):
    from badcompany.services.tracking_service import TrackingService

    cid, _ = await _sent_campaign(session_factory)

    assert await TrackingService(session_factory).record_open(cid, 999) is False
    async with session_factory() as session:
        campaign = await session.get(NewsletterCampaign, cid)
    assert campaign.opened == 0


@pytest.mark.asyncio
async def test_latest_click_time_is_kept(session_factory):
    import asyncio

    from badcompany.services.tracking_service import TrackingService

    cid, sid = await _sent_campaign(session_factory)
    service = TrackingService(session_factory)

    await service.record_click(cid, sid, "https://badcompany.pt/eventos")
    _, recipient, _ = await _load(session_factory, cid, sid)
    first_clicked_at = recipient.clicked_at

    await asyncio.sleep(0.01)
    await service.record_click(cid, sid, "https://badcompany.pt/loja")

    _, recipient, _ = await _load(session_factory, cid, sid)
    async with session_factory() as session:
        latest_click = await session.scalar(select(func.max(NewsletterLinkClick.clicked_at)))
    assert recipient.clicked_at > first_clicked_at
    assert recipient.clicked_at == latest_click


@pytest.mark.asyncio
async def test_out_of_range_ids_are_not_recorded(session_factory):
    from unittest.mock import AsyncMock, patch

    huge = "99999999999999999999"
    with patch(
        "badcompany.api.newsletter_tracking.TrackingService.record_open", new_callable=AsyncMock
    ) as record_open, patch(
        "badcompany.api.newsletter_tracking.TrackingService.record_click", new_callable=AsyncMock
    ) as record_click, patch(
        "badcompany.api.newsletter_tracking.TrackingService.unsubscribe", new_callable=AsyncMock
    ) as unsubscribe:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            pixel = await client.get(f"/api/newsletter-track-open?cid=1&sid={huge}")
            click = await client.get(
                "/api/newsletter-track-click", params={"cid": huge, "sid": 1, "url": "https://badcompany.pt"}
            )
            leave = await client.get(f"/api/newsletter-unsubscribe?sid={huge}")

    assert pixel.content == TRANSPARENT_GIF
    assert click.headers["location"] == "https://badcompany.pt"
    assert leave.headers["location"] == "https://badcompany.test/"
    record_open.assert_not_awaited()
    record_click.assert_not_awaited()
    unsubscribe.assert_not_awaited()


@pytest.mark.asyncio
async def test_out_of_range_id_fails_without_retrying(session_factory):
    from unittest.mock import AsyncMock, patch

    from sqlalchemy.exc import StatementError

    from badcompany.services.tracking_service import TrackingService

    cid, _ = await _sent_campaign(session_factory)

    with patch("badcompany.utils.retry.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        with pytest.raises((OverflowError, StatementError)):
            await TrackingService(session_factory).record_open(cid, 2**63)

    mock_sleep.assert_not_awaited()
