import pytest
from httpx import AsyncClient, ASGITransport
from unittest.mock import AsyncMock, patch

from badcompany.main import app

BOOKINGS = "bookings@badcompany.pt"


async def _post(path: str, payload: dict):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        return await client.post(path, json=payload)


# ---------------------------------------------------------------------------
# Contact form
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_contact_message_is_forwarded_to_bookings(mailer):
    response = await _post(
        "/api/contact",
        {"nome": "Ana Silva", "email": "ana@example.com", "mensagem": "Querem tocar no <b>festival</b>?"},
    )

    assert response.status_code == 200
    assert response.json() == {"message": "Mensagem enviada com sucesso"}
    [mail] = mailer.sent
    assert mail["to"] == BOOKINGS
    assert mail["subject"] == "Nova mensagem de Ana Silva"
    assert mail["headers"] == {"Reply-To": "ana@example.com"}
    assert "&lt;b&gt;festival&lt;/b&gt;" in mail["html"]
    assert "Mensagem: Querem tocar no <b>festival</b>?" in mail["text"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"email": "ana@example.com", "mensagem": "Olá"},
        {"nome": "Ana", "mensagem": "Olá"},
        {"nome": "Ana", "email": "ana@example.com", "mensagem": "   "},
    ],
)
async def test_contact_requires_all_fields(payload, mailer):
    response = await _post("/api/contact", payload)

    assert response.status_code == 400
    assert response.json() == {"error": "Faltam campos obrigatórios"}
    assert mailer.sent == []


@pytest.mark.asyncio
async def test_contact_rejects_malformed_sender(mailer):
    response = await _post("/api/contact", {"nome": "Ana", "email": "ana@", "mensagem": "Olá"})

    assert response.status_code == 400
    assert response.json() == {"error": "Email inválido"}
    assert mailer.sent == []


@pytest.mark.asyncio
async def test_contact_subject_stays_on_one_line(mailer):
    await _post("/api/contact", {"nome": "Ana\r\nBcc: x@example.com", "email": "ana@example.com", "mensagem": "Olá"})

    assert mailer.sent[0]["subject"] == "Nova mensagem de Ana Bcc: x@example.com"


@pytest.mark.asyncio
async def test_contact_delivery_failure_is_500(mailer):
    mailer.refuse.add(BOOKINGS)

    response = await _post("/api/contact", {"nome": "Ana", "email": "ana@example.com", "mensagem": "Olá"})

    assert response.status_code == 500
    assert response.json() == {"error": "Erro interno do servidor"}


# ---------------------------------------------------------------------------
# Budget request form
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_budget_request_fills_placeholders(mailer):
    response = await _post(
        "/api/budget-request",
        {"name": "Rui", "email": "rui@example.com", "eventType": "Casamento", "guestCount": 120},
    )

    assert response.status_code == 200
    assert response.json() == {"success": True}
    [mail] = mailer.sent
    assert mail["to"] == BOOKINGS
    assert mail["subject"] == "Novo Pedido de Orçamento - BadCompany"
    assert "Casamento" in mail["html"]
    assert "120" in mail["html"]
    assert "Não fornecido" in mail["html"]
    assert "Não especificada" in mail["html"]
    assert "Sem detalhes adicionais" in mail["text"]


@pytest.mark.asyncio
async def test_budget_request_requires_event_type(mailer):
    response = await _post("/api/budget-request", {"name": "Rui", "email": "rui@example.com"})

    assert response.status_code == 400
    assert response.json() == {"error": "Faltam campos obrigatórios"}
    assert mailer.sent == []


@pytest.mark.asyncio
async def test_budget_request_provider_error_is_500():
    with patch(
        "badcompany.services.email_service.EmailService.send_bookings_notification",
        new_callable=AsyncMock,
        side_effect=ConnectionError("smtp down"),
    ):
        response = await _post(
            "/api/budget-request", {"name": "Rui", "email": "rui@example.com", "eventType": "Festa privada"}
        )

    assert response.status_code == 500
    assert response.json() == {"error": "Falha ao enviar o pedido de orçamento."}
