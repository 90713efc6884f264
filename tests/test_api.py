"""HTTP-level tests through the ASGI app."""

import json

import httpx
import pytest
import pytest_asyncio

from connect_payments.api.deps import get_payment_config, get_provider
from connect_payments.config import PaymentConfig
from connect_payments.database import get_session
from connect_payments.main import app


@pytest_asyncio.fixture
async def client(seeded_session, provider, config):
    async def _session():
        yield seeded_session

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_provider] = lambda: provider
    app.dependency_overrides[get_payment_config] = lambda: config

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


def _as(user_id):
    return {"X-User-Id": user_id}


async def _post_event(client, provider, event_type, obj):
    payload = json.dumps({"id": "evt_test", "type": event_type, "data": {"object": obj}}).encode()
    return await client.post(
        "/api/webhooks/stripe",
        content=payload,
        headers={"stripe-signature": provider.sign(payload), "content-type": "application/json"},
    )


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "platform_country": "US"}


@pytest.mark.asyncio
async def test_create_intent(client):
    response = await client.post(
        "/api/payments/intents",
        json={"payee_id": "ANN-DE", "amount": "250.00", "currency": "eur"},
        headers=_as("PM-1"),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["cross_border_payment"] is True
    assert body["platform_fee"] == 12.5
    assert body["supported_currencies"] == ["eur", "usd"]
    assert body["client_secret"]


@pytest.mark.asyncio
async def test_rejection_body(client):
    response = await client.post(
        "/api/payments/intents",
        json={"payee_id": "ANN-US", "amount": "0.10"},
        headers=_as("PM-1"),
    )

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "amount_below_minimum"
    assert body["details"]["minimum_amount"] == 0.5


@pytest.mark.asyncio
async def test_rejection_status_codes(client):
    unauthorized = await client.post("/api/payments/intents", json={"payee_id": "ANN-US", "amount": "10"})
    assert unauthorized.status_code == 403

    missing = await client.post(
        "/api/payments/intents", json={"payee_id": "NOBODY", "amount": "10"}, headers=_as("PM-1")
    )
    assert missing.status_code == 404
    assert missing.json()["code"] == "payee_not_found"


@pytest.mark.asyncio
async def test_processor_refusal_is_422(client, provider):
    provider.reject_destination_charges = True
    app.dependency_overrides[get_payment_config] = lambda: PaymentConfig(fallback_to_on_behalf_of=False, max_retries=0)

    response = await client.post(
        "/api/payments/intents", json={"payee_id": "ANN-US", "amount": "10"}, headers=_as("PM-1")
    )

    assert response.status_code == 422
    assert response.json()["code"] == "destination_restricted"


@pytest.mark.asyncio
async def test_webhook_settles_and_trace_shows_it(client, provider):
    created = (await client.post(
        "/api/payments/intents",
        json={"payee_id": "ANN-DE", "amount": "100", "currency": "eur"},
        headers=_as("PM-1"),
    )).json()
    intent = {"id": created["payment_intent_id"], "on_behalf_of": "acct_de", "latest_charge": "ch_de_1"}

    first = await _post_event(client, provider, "payment_intent.succeeded", intent)
    again = await _post_event(client, provider, "payment_intent.succeeded", intent)

    assert first.status_code == 200
    assert first.json()["status"] == "completed"
    assert first.json()["transfer_id"].startswith("tr_")
    assert again.json()["already_processed"] is True
    assert len(provider.transfer_requests) == 1
    assert provider.transfer_requests[0].source_transaction == "ch_de_1"

    trace = (await client.get(f"/api/payments/{created['payment_id']}/trace", headers=_as("PM-1"))).json()
    assert trace["payment"]["status"] == "completed"
    assert [e["action"] for e in trace["audit_trail"]] == ["routing_selected", "intent_created", "transfer_created"]
    assert trace["audit_trail"][2]["details"]["net_minor"] == 9500


@pytest.mark.asyncio
async def test_webhook_bad_signature(client):
    response = await client.post(
        "/api/webhooks/stripe", content=b"{}", headers={"stripe-signature": "forged"}
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_webhook_unknown_intent_is_404(client, provider):
    response = await _post_event(
        client, provider, "payment_intent.succeeded",
        {"id": "pi_missing", "transfer_data": {"destination": "acct_us"}},
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_webhook_ignores_non_connect_intents(client, provider):
    response = await _post_event(client, provider, "payment_intent.succeeded", {"id": "pi_plain"})
    assert response.status_code == 200
    assert response.json() == {"received": True, "handled": False}


@pytest.mark.asyncio
async def test_webhook_failed_and_refund(client, provider):
    created = (await client.post(
        "/api/payments/intents", json={"payee_id": "ANN-US", "amount": "10"}, headers=_as("PM-1")
    )).json()
    intent = {
        "id": created["payment_intent_id"],
        "transfer_data": {"destination": "acct_us"},
        "last_payment_error": {"message": "Your card was declined."},
    }

    response = await _post_event(client, provider, "payment_intent.payment_failed", intent)
    assert response.json()["handled"] is True

    payment = (await client.get(f"/api/payments/{created['payment_id']}", headers=_as("PM-1"))).json()
    assert payment["status"] == "failed"
    assert payment["error_message"] == "Your card was declined."

    refund = await _post_event(client, provider, "charge.refunded", {"payment_intent": created["payment_intent_id"]})
    assert refund.json()["handled"] is False


@pytest.mark.asyncio
async def test_account_updated_webhook(client, provider):
    response = await _post_event(client, provider, "account.updated", {
        "id": "acct_pending", "details_submitted": True, "charges_enabled": True, "payouts_enabled": True,
    })
    assert response.json()["handled"] is True


@pytest.mark.asyncio
async def test_payment_visibility(client):
    created = (await client.post(
        "/api/payments/intents", json={"payee_id": "ANN-US", "amount": "10"}, headers=_as("PM-1")
    )).json()

    mine = (await client.get("/api/payments", headers=_as("PM-1"))).json()
    assert [p["id"] for p in mine] == [created["payment_id"]]

    received = (await client.get("/api/payments", headers=_as("ANN-US"))).json()
    assert [p["id"] for p in received] == [created["payment_id"]]

    other = await client.get(f"/api/payments/{created['payment_id']}", headers=_as("PM-2"))
    assert other.status_code == 404


@pytest.mark.asyncio
async def test_onboarding_and_status(client, provider):
    response = await client.post("/api/connect/accounts", json={"country": "GB"}, headers=_as("ANN-NONE"))
    assert response.status_code == 200
    assert response.json()["url"].startswith("https://connect.mock/setup/")

    status = await client.get("/api/connect/accounts/status", headers=_as("ANN-NONE"))
    assert status.json() == {"status": "incomplete"}

    refused = await client.post("/api/connect/accounts", json={"country": "US"}, headers=_as("PM-1"))
    assert refused.status_code == 403

    unsupported = await client.post("/api/connect/accounts", json={"country": "RU"}, headers=_as("ANN-US"))
    assert unsupported.status_code == 200  # existing account: new link, country unchanged


@pytest.mark.asyncio
async def test_countries_and_payee_currencies(client):
    countries = (await client.get("/api/connect/countries")).json()
    by_code = {c["code"]: c for c in countries}
    assert by_code["US"]["cross_border"] is False
    assert by_code["MX"]["card_payments"] is False
    assert by_code["DE"]["name"] == "Germany"

    currencies = (await client.get("/api/connect/payees/ANN-JP/currencies")).json()
    assert currencies == {
        "payee_id": "ANN-JP",
        "payee_country": "JP",
        "supported_currencies": ["jpy", "usd"],
        "cross_border": True,
    }
