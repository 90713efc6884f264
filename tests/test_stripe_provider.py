"""Tests for the Stripe adapter: error translation, request shape, webhook verification."""

import hashlib
import hmac
import json
import time
from unittest.mock import patch

import pytest
import stripe

from connect_payments.engine.retry import PermanentError, ProcessorTimeout, ProviderError, RateLimitError
from connect_payments.providers.base import PaymentIntentRequest, TransferRequest, WebhookSignatureError
from connect_payments.providers.stripe_provider import StripePaymentProvider, translate_stripe_error

SECRET = "whsec_test_secret"


@pytest.fixture
def stripe_provider():
    return StripePaymentProvider(api_key="sk_test_123", webhook_secret=SECRET, timeout_seconds=2.0)


def _signed(payload: bytes, secret: str = SECRET) -> str:
    timestamp = int(time.time())
    signed = f"{timestamp}.{payload.decode()}".encode()
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


class TestErrorTranslation:
    def test_rate_limit(self):
        error = translate_stripe_error(stripe.RateLimitError("Too many requests"))
        assert isinstance(error, RateLimitError)
        assert error.retriable

    def test_connection_error(self):
        error = translate_stripe_error(stripe.APIConnectionError("Connection reset"))
        assert isinstance(error, ProcessorTimeout)
        assert error.retriable

    def test_invalid_request_is_permanent(self):
        error = translate_stripe_error(
            stripe.InvalidRequestError("No such destination: 'acct_x'", "destination", code="resource_missing")
        )
        assert isinstance(error, PermanentError)
        assert error.code == "resource_missing"
        assert not error.retriable

    def test_server_error_is_retriable(self):
        error = translate_stripe_error(stripe.APIError("Internal error", http_status=502))
        assert type(error) is ProviderError
        assert error.retriable

    def test_authentication_is_permanent(self):
        error = translate_stripe_error(stripe.AuthenticationError("Invalid API key"))
        assert isinstance(error, PermanentError)
        assert error.status_code == 401


def test_requires_api_key():
    with pytest.raises(ValueError):
        StripePaymentProvider(api_key="")


@pytest.mark.asyncio
async def test_payment_intent_request_shape(stripe_provider):
    request = PaymentIntentRequest(
        amount_minor=10000,
        currency="eur",
        payment_method_types=["card"],
        idempotency_key="create_intent:PM-1:ANN-DE:abc",
        metadata={"payer_id": "PM-1"},
        on_behalf_of="acct_de",
    )

    with patch.object(stripe.PaymentIntent, "create") as create:
        create.return_value = {
            "id": "pi_123", "client_secret": "pi_123_secret", "status": "requires_payment_method",
            "amount": 10000, "currency": "eur",
        }
        response = await stripe_provider.create_payment_intent(request)

    kwargs = create.call_args.kwargs
    assert kwargs["api_key"] == "sk_test_123"
    assert kwargs["idempotency_key"] == "create_intent:PM-1:ANN-DE:abc"
    assert kwargs["on_behalf_of"] == "acct_de"
    assert "application_fee_amount" not in kwargs
    assert "transfer_data" not in kwargs
    assert response.id == "pi_123"
    assert response.client_secret == "pi_123_secret"


@pytest.mark.asyncio
async def test_transfer_error_is_translated(stripe_provider):
    request = TransferRequest(amount_minor=9500, currency="eur", destination="acct_de", idempotency_key="transfer:p1")

    with patch.object(stripe.Transfer, "create") as create:
        create.side_effect = stripe.InvalidRequestError(
            "Insufficient funds in Stripe account", None, code="balance_insufficient"
        )
        with pytest.raises(PermanentError) as exc_info:
            await stripe_provider.create_transfer(request)

    assert exc_info.value.code == "balance_insufficient"
    assert create.call_args.kwargs["idempotency_key"] == "transfer:p1"


@pytest.mark.asyncio
async def test_transfer_carries_source_charge(stripe_provider):
    request = TransferRequest(
        amount_minor=9500, currency="eur", destination="acct_de",
        idempotency_key="transfer:p1", source_transaction="ch_123",
    )

    with patch.object(stripe.Transfer, "create") as create:
        create.return_value = {"id": "tr_1", "amount": 9500, "currency": "eur", "destination": "acct_de"}
        response = await stripe_provider.create_transfer(request)

    assert create.call_args.kwargs["source_transaction"] == "ch_123"
    assert response.id == "tr_1"


@pytest.mark.asyncio
async def test_retrieve_account(stripe_provider):
    with patch.object(stripe.Account, "retrieve") as retrieve:
        retrieve.return_value = {
            "id": "acct_de", "country": "de", "email": "lena@example.com",
            "details_submitted": True, "charges_enabled": True, "payouts_enabled": False,
            "capabilities": {"transfers": "active"},
        }
        account = await stripe_provider.retrieve_account("acct_de")

    assert account.country == "DE"
    assert account.payouts_enabled is False
    assert account.capabilities == {"transfers": "active"}


class TestWebhookVerification:
    def test_valid_signature(self, stripe_provider):
        payload = json.dumps({
            "id": "evt_1", "object": "event", "type": "payment_intent.succeeded",
            "data": {"object": {"id": "pi_1", "on_behalf_of": "acct_de"}},
        }).encode()

        event = stripe_provider.construct_event(payload, _signed(payload))

        assert event.id == "evt_1"
        assert event.type == "payment_intent.succeeded"
        assert event.data == {"id": "pi_1", "on_behalf_of": "acct_de"}

    def test_wrong_secret(self, stripe_provider):
        payload = b'{"id": "evt_1", "object": "event", "type": "x", "data": {"object": {}}}'
        with pytest.raises(WebhookSignatureError):
            stripe_provider.construct_event(payload, _signed(payload, secret="whsec_other"))

    def test_missing_signature(self, stripe_provider):
        with pytest.raises(WebhookSignatureError):
            stripe_provider.construct_event(b"{}", "")
