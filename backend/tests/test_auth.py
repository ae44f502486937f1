import pytest
from httpx import AsyncClient, ASGITransport

from badcompany.auth.admin import create_access_token
from badcompany.config import get_settings
from badcompany.main import app

ADMIN_ROUTES = [
    ("POST", "/api/newsletter-send"),
    ("POST", "/api/newsletter-test"),
    ("POST", "/api/newsletter-analytics"),
    ("GET", "/api/newsletter-campaigns"),
    ("GET", "/api/newsletter-tags"),
    ("GET", "/api/newsletter-subscribe"),
    ("GET", "/api/newsletters-subscribers/1/tags"),
]


@pytest.mark.asyncio
@pytest.mark.parametrize("method,path", ADMIN_ROUTES)
async def test_admin_routes_require_token(method, path):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.request(method, path, json={})

    assert response.status_code == 401
    assert response.json() == {"error": "Not authenticated"}


@pytest.mark.asyncio
@pytest.mark.parametrize("method,path", ADMIN_ROUTES)
async def test_admin_routes_reject_other_roles(method, path, editor_headers):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.request(method, path, json={}, headers=editor_headers)

    assert response.status_code == 403
    assert response.json() == {"error": "Acesso não autorizado"}


@pytest.mark.asyncio
async def test_expired_and_tampered_tokens_are_rejected():
    expired = create_access_token("1", "admin@badcompany.pt", "admin", expires_minutes=-1)
    tampered = create_access_token("1", "admin@badcompany.pt", "admin").rsplit(".", 1)[0] + ".not-the-signature"

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        for token in (expired, tampered):
            response = await client.get("/api/newsletter-campaigns", headers={"Authorization": f"Bearer {token}"})
            assert response.status_code == 401


@pytest.mark.asyncio
async def test_newsletter_manager_can_use_cookie(session_factory):
    token = create_access_token("3", "gestor@badcompany.pt", "newsletter_manager")
    cookie_name = get_settings().cookie_access_token_name

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", cookies={cookie_name: token}) as client:
        response = await client.get("/api/newsletter-campaigns")

    assert response.status_code == 200
    assert response.json() == []


@pytest.mark.asyncio
async def test_public_routes_need_no_token(session_factory):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        pixel = await client.get("/api/newsletter-track-open?cid=1&sid=1")
        visitors = await client.get("/api/visitors/count")
        health = await client.get("/health")

    assert pixel.status_code == 200
    assert visitors.status_code == 200
    assert health.status_code == 200
    assert "X-Request-ID" in health.headers
