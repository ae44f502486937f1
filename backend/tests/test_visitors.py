import pytest
from httpx import AsyncClient, ASGITransport

from badcompany.main import app


@pytest.mark.asyncio
async def test_visits_and_devices_are_counted(session_factory):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        first = await client.post("/api/visitors", json={"visitorId": "abc-123", "userAgent": "Mozilla/5.0"})
        await client.post("/api/visitors", json={"visitorId": "abc-123"})
        await client.post("/api/visitors", json={"visitorId": "def-456"})
        count = await client.get("/api/visitors/count")
        devices = await client.get("/api/visitors/devices")

    assert first.json() == {"success": True, "visitorId": "abc-123"}
    assert count.json() == {"count": 3}
    assert devices.json() == {"count": 2}


@pytest.mark.asyncio
async def test_visitor_id_is_required(session_factory):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.post("/api/visitors", json={"userAgent": "Mozilla/5.0"})

    assert response.status_code == 400
    assert response.json() == {"error": "ID do visitante é obrigatório"}


@pytest.mark.asyncio
async def test_counts_start_at_zero(session_factory):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        count = await client.get("/api/visitors/count")

    assert count.json() == {"count": 0}
