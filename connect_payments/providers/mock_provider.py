"""
Mock payment processor for tests and local demos.

Simulates the Connect API surface the service uses:
  - Configurable latency and random failure rate (rate limits, 503s, 400s)
  - In-memory connected accounts
  - Processor-style IDs (acct_, pi_, tr_)
  - Every request is recorded so tests can assert on the exact wire shape

Deterministic refusals can be switched on to exercise the failure paths:
  - reject_destination_charges: refuse transfer_data.destination requests the
    way the processor does for cross-region destination charges
  - transfer_error: raise this error from create_transfer
"""

import asyncio
import json
import random
import uuid
from typing import Optional

from connect_payments.config import settings
from connect_payments.engine.retry import PermanentError, ProviderError, RateLimitError
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


# Fully onboarded accounts available to local demos (see seed/seed_data.py).
DEMO_ACCOUNTS: dict[str, str] = {
    "acct_demo_us": "US",
    "acct_demo_de": "DE",
    "acct_demo_gb": "GB",
    "acct_demo_jp": "JP",
    "acct_demo_mx": "MX",
    "acct_demo_in": "IN",
}


class MockPaymentProvider(PaymentProvider):
    """In-memory processor with latency and failure simulation."""

    def __init__(
        self,
        failure_rate: Optional[float] = None,
        latency_ms: Optional[int] = None,
        webhook_secret: str = "whsec_mock",
        reject_destination_charges: bool = False,
        transfer_error: Optional[ProviderError] = None,
        preload_demo_accounts: bool = False,
    ):
        self._failure_rate = failure_rate if failure_rate is not None else settings.mock_failure_rate
        self._latency_ms = latency_ms if latency_ms is not None else settings.mock_latency_ms
        self._webhook_secret = webhook_secret
        self.reject_destination_charges = reject_destination_charges
        self.transfer_error = transfer_error

        self.accounts: dict[str, AccountInfo] = {}
        self.intent_requests: list[PaymentIntentRequest] = []
        self.transfer_requests: list[TransferRequest] = []
        self.account_links: list[str] = []

        if preload_demo_accounts:
            for account_id, country in DEMO_ACCOUNTS.items():
                self.add_account(country, account_id=account_id)

    @property
    def name(self) -> str:
        return "mock_provider"

    def add_account(
        self,
        country: str,
        account_id: Optional[str] = None,
        active: bool = True,
        email: Optional[str] = None,
    ) -> AccountInfo:
        """Register an already-onboarded account (test helper)."""
        account = AccountInfo(
            id=account_id or f"acct_{uuid.uuid4().hex[:16]}",
            country=country.upper(),
            email=email,
            details_submitted=active,
            charges_enabled=active,
            payouts_enabled=active,
        )
        self.accounts[account.id] = account
        return account

    async def _simulate_network(self) -> None:
        if self._latency_ms > 0:
            jitter = random.uniform(0.5, 1.5)
            await asyncio.sleep(self._latency_ms * jitter / 1000)

        if self._failure_rate <= 0:
            return

        roll = random.random()
        if roll < self._failure_rate * 0.3:
            raise RateLimitError(message="Mock rate limit - too many requests", retry_after=0.01)
        if roll < self._failure_rate * 0.6:
            raise ProviderError(
                message="Mock transient error - service temporarily unavailable",
                status_code=503,
                retriable=True,
            )
        if roll < self._failure_rate:
            raise PermanentError(message="Mock permanent error - invalid request", status_code=400)

    async def create_account(self, country, email, capabilities, metadata=None, business_name=None):
        await self._simulate_network()
        account = AccountInfo(
            id=f"acct_{uuid.uuid4().hex[:16]}",
            country=country.upper(),
            email=email,
            capabilities={name: "inactive" for name in capabilities},
        )
        self.accounts[account.id] = account
        return account

    async def retrieve_account(self, account_id: str) -> AccountInfo:
        await self._simulate_network()
        account = self.accounts.get(account_id)
        if account is None:
            raise PermanentError(f"No such account: '{account_id}'", status_code=404, code="resource_missing")
        return account

    async def create_account_link(self, account_id: str, refresh_url: str, return_url: str) -> str:
        await self._simulate_network()
        if account_id not in self.accounts:
            raise PermanentError(f"No such account: '{account_id}'", status_code=404, code="resource_missing")
        url = f"https://connect.mock/setup/{account_id}/{uuid.uuid4().hex[:8]}"
        self.account_links.append(url)
        return url

    async def create_payment_intent(self, request: PaymentIntentRequest) -> PaymentIntentResponse:
        await self._simulate_network()
        self.intent_requests.append(request)

        if self.reject_destination_charges and not request.is_on_behalf_of:
            raise PermanentError(
                "Funds can't be sent to accounts located in this region when the "
                "destination charge is created without on_behalf_of (cross-border restriction).",
                status_code=400,
                code="transfers_not_allowed",
            )

        intent_id = f"pi_{uuid.uuid4().hex[:24]}"
        return PaymentIntentResponse(
            id=intent_id,
            client_secret=f"{intent_id}_secret_{uuid.uuid4().hex[:16]}",
            status="requires_payment_method",
            amount_minor=request.amount_minor,
            currency=request.currency,
        )

    async def create_transfer(self, request: TransferRequest) -> TransferResponse:
        await self._simulate_network()
        self.transfer_requests.append(request)

        if self.transfer_error is not None:
            raise self.transfer_error

        return TransferResponse(
            id=f"tr_{uuid.uuid4().hex[:24]}",
            amount_minor=request.amount_minor,
            currency=request.currency,
            destination=request.destination,
        )

    def sign(self, payload: bytes) -> str:
        """Signature header value the mock accepts for this payload."""
        return f"mock={self._webhook_secret}"

    def construct_event(self, payload: bytes, signature: str) -> WebhookEvent:
        if not signature or signature != self.sign(payload):
            raise WebhookSignatureError("Invalid webhook signature")
        try:
            body = json.loads(payload)
        except (json.JSONDecodeError, TypeError) as e:
            raise WebhookSignatureError(f"Invalid payload: {e}") from e
        return WebhookEvent(
            id=body.get("id", f"evt_{uuid.uuid4().hex[:16]}"),
            type=body["type"],
            data=body.get("data", {}).get("object", {}),
        )
