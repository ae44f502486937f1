import pytest
from datetime import datetime, timedelta, timezone
from httpx import AsyncClient, ASGITransport

from badcompany.main import app
from badcompany.models.newsletter import (
    NewsletterCampaign,
    NewsletterCampaignRecipient,
    NewsletterLinkClick,
    NewsletterSubscriber,
    NewsletterUnsubscribe,
)
from badcompany.services.analytics_service import (
    AnalyticsService,
    compute_campaign_stats,
    format_rate,
    timeframe_start,
)

NOW = datetime(2026, 3, 31, 12, 0, tzinfo=timezone.utc)


def test_timeframe_bounds():
    assert timeframe_start("day", NOW) == NOW - timedelta(days=1)
    assert timeframe_start("week", NOW) == NOW - timedelta(days=7)
    # Calendar month back, clamped to the shorter month
    assert timeframe_start("month", NOW) == datetime(2026, 2, 28, 12, 0, tzinfo=timezone.utc)
    assert timeframe_start("year", NOW) == datetime(2025, 3, 31, 12, 0, tzinfo=timezone.utc)
    assert timeframe_start("all", NOW).year == 1970
    assert timeframe_start(None, NOW).year == 1970


def test_format_rate_guards_zero_denominator():
    assert format_rate(0, 0) == "0.00"
    assert format_rate(1, 3) == "33.33"


def test_stats_for_empty_campaign():
    stats = compute_campaign_stats([])
    assert (stats.open_rate, stats.click_rate, stats.avg_time_to_open) == ("0.00", "0.00", "0.0")


async def _seed_campaign(session_factory):
    """10 recipients: 6 mailed three days ago, 4 within the last day (2 opened, 1 clicked)."""
    now = datetime.now(timezone.utc)
    async with session_factory() as session:
        subscribers = [NewsletterSubscriber(email=f"s{i}@example.com") for i in range(10)]
        campaign = NewsletterCampaign(
            title="Março",
            subject="Março",
            content="<p>x</p>",
            status="sent",
            sent_at=now - timedelta(days=3),
            total_recipients=10,
            opened=4,
            clicked=2,
        )
        session.add_all(subscribers + [campaign])
        await session.flush()

        for index, subscriber in enumerate(subscribers):
            old = index < 6
            sent_at = now - timedelta(days=3) if old else now - timedelta(hours=6)
            opened = index in (0, 1, 6, 7)
            clicked = index in (0, 6)
            session.add(
                NewsletterCampaignRecipient(
                    campaign_id=campaign.id,
                    subscriber_id=subscriber.id,
                    sent_at=sent_at,
                    opened_at=sent_at + timedelta(hours=2) if opened else None,
                    clicked_at=sent_at + timedelta(hours=3) if clicked else None,
                )
            )
        await session.commit()
        return campaign.id


@pytest.mark.asyncio
async def test_day_timeframe_only_counts_recent_rows(session_factory):
    campaign_id = await _seed_campaign(session_factory)

    result = await AnalyticsService(session_factory).campaign_analytics(campaign_id, "day")

    assert result.stats.total_sent == 4
    assert result.stats.total_opened == 2
    assert result.stats.total_clicked == 1
    assert result.stats.open_rate == "50.00"
    assert result.stats.click_rate == "50.00"
    assert result.stats.avg_time_to_open == "2.0"
    assert result.timeframe == "day"


@pytest.mark.asyncio
async def test_all_time_counts_every_row(session_factory):
    campaign_id = await _seed_campaign(session_factory)

    result = await AnalyticsService(session_factory).campaign_analytics(campaign_id, None)

    assert result.stats.total_sent == 10
    assert result.stats.total_opened == 4
    assert result.stats.open_rate == "40.00"


@pytest.mark.asyncio
async def test_analytics_endpoint(session_factory, admin_headers):
    campaign_id = await _seed_campaign(session_factory)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        ok = await client.post(
            "/api/newsletter-analytics", headers=admin_headers, json={"campaignId": campaign_id, "timeframe": "week"}
        )
        missing = await client.post("/api/newsletter-analytics", headers=admin_headers, json={"timeframe": "week"})
        unknown = await client.post("/api/newsletter-analytics", headers=admin_headers, json={"campaignId": 999})

    assert ok.status_code == 200
    body = ok.json()
    assert body["campaign"]["id"] == campaign_id
    assert body["stats"]["totalSent"] == 10
    assert body["stats"]["openRate"] == "40.00"
    assert body["timeframe"] == "week"
    assert missing.status_code == 400
    assert unknown.status_code == 404
    assert unknown.json() == {"error": "Campanha não encontrada"}


@pytest.mark.asyncio
async def test_campaign_list_rates(session_factory, admin_headers):
    await _seed_campaign(session_factory)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/api/newsletter-campaigns", headers=admin_headers)

    assert response.status_code == 200
    [item] = response.json()
    assert item["totalRecipients"] == 10
    assert item["openRate"] == "40.00"
    assert item["clickRate"] == "50.00"


@pytest.mark.asyncio
async def test_reconcile_rebuilds_counters(session_factory, admin_headers):
    campaign_id = await _seed_campaign(session_factory)
    async with session_factory() as session:
        campaign = await session.get(NewsletterCampaign, campaign_id)
        campaign.opened = 9
        campaign.clicked = 0
        session.add_all(
            NewsletterLinkClick(campaign_id=campaign_id, subscriber_id=1, url="https://badcompany.pt")
            for _ in range(3)
        )
        await session.commit()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.post(f"/api/newsletter-campaigns/{campaign_id}/reconcile", headers=admin_headers)
        again = await client.post(f"/api/newsletter-campaigns/{campaign_id}/reconcile", headers=admin_headers)
        unknown = await client.post("/api/newsletter-campaigns/999/reconcile", headers=admin_headers)

    assert response.json() == {"campaignsUpdated": 1}
    assert again.json() == {"campaignsUpdated": 0}
    assert unknown.status_code == 404
    async with session_factory() as session:
        campaign = await session.get(NewsletterCampaign, campaign_id)
    assert (campaign.opened, campaign.clicked) == (4, 3)


@pytest.mark.asyncio
async def test_reconcile_job_runs_against_all_campaigns(session_factory):
    from badcompany.jobs.reconcile_counters import reconcile_counters_job

    campaign_id = await _seed_campaign(session_factory)

    corrected = await reconcile_counters_job(session_factory)

    assert corrected == 1
    async with session_factory() as session:
        campaign = await session.get(NewsletterCampaign, campaign_id)
    assert (campaign.opened, campaign.clicked) == (4, 0)


@pytest.mark.asyncio
async def test_subscriber_overview(session_factory, admin_headers):
    now = datetime.now(timezone.utc)
    async with session_factory() as session:
        recent = NewsletterSubscriber(email="recent@example.com", source="website", created_at=now - timedelta(days=2))
        older = NewsletterSubscriber(email="older@example.com", source="CSV Import", created_at=now - timedelta(days=60))
        left = NewsletterSubscriber(email="left@example.com", active=False, created_at=now - timedelta(days=90))
        session.add_all([recent, older, left])
        await session.flush()
        session.add(NewsletterUnsubscribe(subscriber_id=left.id, reason="user_request", unsubscribed_at=now))
        await session.commit()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        everyone = await client.get("/api/newsletter-subscribe?page=1&pageSize=2", headers=admin_headers)
        csv_only = await client.get("/api/newsletter-subscribe?source=CSV&active=true", headers=admin_headers)

    body = everyone.json()
    assert body["stats"] == {
        "totalSubscribers": 2,
        "recentSubscribers": 1,
        "unsubscribedRecently": 1,
        "activeRatio": "66.67",
    }
    assert body["pagination"] == {"total": 3, "page": 1, "pageSize": 2, "totalPages": 2}
    assert [s["email"] for s in body["subscribers"]] == ["recent@example.com", "older@example.com"]
    assert [s["email"] for s in csv_only.json()["subscribers"]] == ["older@example.com"]
