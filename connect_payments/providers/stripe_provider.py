"""
Stripe Connect adapter.

Wraps the official stripe SDK behind PaymentProvider. The SDK is blocking,
so each call runs in a worker thread. The API key is passed per request
rather than set on the stripe module, and every request has a bounded
timeout; a timeout surfaces as ProcessorTimeout (retriable).

Stripe errors are translated:
  - RateLimitError                     -> RateLimitError (retriable)
  - APIConnectionError                 -> ProcessorTimeout (retriable)
  - APIError (5xx)                     -> ProviderError (retriable)
  - InvalidRequestError / PermissionError / CardError -> PermanentError
"""

import asyncio
import json
import logging
import time
from typing import Any, Callable

import stripe

from connect_payments.engine.retry import PermanentError, ProcessorTimeout, ProviderError, RateLimitError
from connect_payments.providers.base import (
    AccountInfo,
    PaymentIntentRequest,
    PaymentIntentResponse,
    PaymentProvider,
    TransferRequest,
    TransferResponse,
    WebhookEvent,
    WebhookSignatureError,
)

logger = logging.getLogger("connect_payments.providers.stripe")


def _account_info(account: Any) -> AccountInfo:
    capabilities = account.get("capabilities") or {}
    return AccountInfo(
        id=account["id"],
        country=(account.get("country") or "").upper(),
        email=account.get("email"),
        details_submitted=bool(account.get("details_submitted")),
        charges_enabled=bool(account.get("charges_enabled")),
        payouts_enabled=bool(account.get("payouts_enabled")),
        capabilities={name: str(state) for name, state in dict(capabilities).items()},
    )


def translate_stripe_error(error: Exception) -> ProviderError:
    """Map a stripe SDK exception onto the provider error hierarchy."""
    message = getattr(error, "user_message", None) or str(error)
    code = getattr(error, "code", None)
    status = getattr(error, "http_status", None)

    if isinstance(error, stripe.RateLimitError):
        return RateLimitError(message=message)
    if isinstance(error, stripe.APIConnectionError):
        return ProcessorTimeout(message=message)
    if isinstance(error, (stripe.InvalidRequestError, stripe.PermissionError, stripe.CardError)):
        return PermanentError(message, status_code=status or 400, code=code)
    if isinstance(error, stripe.AuthenticationError):
        return PermanentError(message, status_code=status or 401, code=code or "authentication")
    if isinstance(error, stripe.StripeError):
        retriable = status is None or status >= 500
        return ProviderError(message, status_code=status or 500, retriable=retriable, code=code)
    return ProviderError(str(error), status_code=500, retriable=False)


class StripePaymentProvider(PaymentProvider):
    """PaymentProvider backed by Stripe Connect (Express accounts)."""

    def __init__(
        self,
        api_key: str,
        webhook_secret: str = "",
        timeout_seconds: float = 10.0,
    ):
        if not api_key:
            raise ValueError("Stripe secret key is not configured")
        self._api_key = api_key
        self._webhook_secret = webhook_secret
        self._timeout = timeout_seconds
        self._configured = False

    @property
    def name(self) -> str:
        return "stripe"

    def _configure(self) -> None:
        if not self._configured:
            stripe.default_http_client = stripe.RequestsClient(timeout=self._timeout)
            self._configured = True

    async def _call(self, operation: str, func: Callable[..., Any], **params: Any) -> Any:
        self._configure()
        start = time.monotonic()
        try:
            result = await asyncio.wait_for(
                asyncio.to_thread(func, api_key=self._api_key, **params),
                timeout=self._timeout + 1,
            )
        except asyncio.TimeoutError as e:
            logger.warning("Stripe %s timed out after %.1fs", operation, self._timeout)
            raise ProcessorTimeout(f"Stripe {operation} timed out") from e
        except stripe.StripeError as e:
            translated = translate_stripe_error(e)
            logger.warning(
                "Stripe %s failed in %.0fms: %s (code=%s, retriable=%s)",
                operation,
                (time.monotonic() - start) * 1000,
                translated,
                translated.code,
                translated.retriable,
            )
            raise translated from e

        logger.info("Stripe %s completed in %.0fms", operation, (time.monotonic() - start) * 1000)
        return result

    async def create_account(self, country, email, capabilities, metadata=None, business_name=None):
        params: dict[str, Any] = {
            "type": "express",
            "country": country,
            "email": email,
            "capabilities": capabilities,
            "business_type": "individual",
            "metadata": metadata or {},
        }
        if business_name:
            params["business_profile"] = {"name": business_name}
        account = await self._call("create_account", stripe.Account.create, **params)
        return _account_info(account)

    async def retrieve_account(self, account_id: str) -> AccountInfo:
        account = await self._call("retrieve_account", stripe.Account.retrieve, id=account_id)
        return _account_info(account)

    async def create_account_link(self, account_id: str, refresh_url: str, return_url: str) -> str:
        link = await self._call(
            "create_account_link",
            stripe.AccountLink.create,
            account=account_id,
            refresh_url=refresh_url,
            return_url=return_url,
            type="account_onboarding",
        )
        return link["url"]

    async def create_payment_intent(self, request: PaymentIntentRequest) -> PaymentIntentResponse:
        intent = await self._call(
            "create_payment_intent",
            stripe.PaymentIntent.create,
            idempotency_key=request.idempotency_key,
            **request.to_params(),
        )
        return PaymentIntentResponse(
            id=intent["id"],
            client_secret=intent.get("client_secret"),
            status=intent["status"],
            amount_minor=intent["amount"],
            currency=intent["currency"],
        )

    async def create_transfer(self, request: TransferRequest) -> TransferResponse:
        params: dict[str, Any] = {
            "amount": request.amount_minor,
            "currency": request.currency,
            "destination": request.destination,
            "metadata": request.metadata,
        }
        if request.source_transaction:
            params["source_transaction"] = request.source_transaction
        transfer = await self._call(
            "create_transfer",
            stripe.Transfer.create,
            idempotency_key=request.idempotency_key,
            **params,
        )
        return TransferResponse(
            id=transfer["id"],
            amount_minor=transfer["amount"],
            currency=transfer["currency"],
            destination=transfer["destination"],
        )

    def construct_event(self, payload: bytes, signature: str) -> WebhookEvent:
        if not signature:
            raise WebhookSignatureError("No signature found")
        try:
            event = stripe.Webhook.construct_event(payload, signature, self._webhook_secret)
        except stripe.SignatureVerificationError as e:
            raise WebhookSignatureError(str(e)) from e
        except ValueError as e:
            raise WebhookSignatureError(f"Invalid payload: {e}") from e

        # Handlers get plain dicts, not SDK objects.
        body = json.loads(payload)
        return WebhookEvent(id=event["id"], type=event["type"], data=body["data"]["object"])
