"""
Abstract payment processor interface.

The orchestrator and reconciler only talk to this interface. The Stripe
adapter wraps the real Connect API; the mock keeps everything in memory for
tests and local demos. All amounts crossing this boundary are minor units.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class AccountInfo:
    """Snapshot of a connected payee account as the processor reports it."""

    id: str
    country: str
    email: Optional[str] = None
    details_submitted: bool = False
    charges_enabled: bool = False
    payouts_enabled: bool = False
    capabilities: dict[str, str] = field(default_factory=dict)


@dataclass
class PaymentIntentRequest:
    """
    Request to create a payment intent.

    Exactly one routing shape is allowed:
      - destination charge: application_fee_amount + destination
      - on behalf of: on_behalf_of, and no application fee
    """

    amount_minor: int
    currency: str
    payment_method_types: list[str]
    idempotency_key: str
    description: str = ""
    metadata: dict[str, str] = field(default_factory=dict)
    application_fee_amount: Optional[int] = None
    destination: Optional[str] = None
    on_behalf_of: Optional[str] = None

    def __post_init__(self) -> None:
        if self.amount_minor <= 0:
            raise ValueError("amount_minor must be positive")
        if not self.idempotency_key:
            raise ValueError("idempotency_key is required")
        if self.on_behalf_of and (self.destination or self.application_fee_amount is not None):
            raise ValueError("on_behalf_of cannot be combined with a destination or application fee")
        if not self.on_behalf_of and not self.destination:
            raise ValueError("either destination or on_behalf_of is required")

    @property
    def is_on_behalf_of(self) -> bool:
        return bool(self.on_behalf_of)

    def to_params(self) -> dict[str, Any]:
        """Processor wire shape (without the idempotency key)."""
        params: dict[str, Any] = {
            "amount": self.amount_minor,
            "currency": self.currency,
            "payment_method_types": list(self.payment_method_types),
            "description": self.description,
            "metadata": dict(self.metadata),
        }
        if self.on_behalf_of:
            params["on_behalf_of"] = self.on_behalf_of
        else:
            params["application_fee_amount"] = self.application_fee_amount or 0
            params["transfer_data"] = {"destination": self.destination}
        return params


@dataclass
class PaymentIntentResponse:
    id: str
    client_secret: Optional[str]
    status: str
    amount_minor: int
    currency: str


@dataclass
class TransferRequest:
    """Request to move funds from the platform balance to a payee account."""

    amount_minor: int
    currency: str
    destination: str
    idempotency_key: str
    metadata: dict[str, str] = field(default_factory=dict)
    source_transaction: Optional[str] = None


@dataclass
class TransferResponse:
    id: str
    amount_minor: int
    currency: str
    destination: str


@dataclass
class WebhookEvent:
    """A verified processor notification."""

    id: str
    type: str  # "payment_intent.succeeded", "account.updated", ...
    data: dict[str, Any]


class WebhookSignatureError(Exception):
    """Webhook payload failed signature verification."""


class PaymentProvider(ABC):
    """Abstract base class for payment processors."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier (e.g. 'stripe', 'mock_provider')."""
        ...

    @abstractmethod
    async def create_account(
        self,
        country: str,
        email: Optional[str],
        capabilities: dict[str, dict[str, bool]],
        metadata: Optional[dict[str, str]] = None,
        business_name: Optional[str] = None,
    ) -> AccountInfo:
        """Create a connected payee account. Country cannot be changed later."""
        ...

    @abstractmethod
    async def retrieve_account(self, account_id: str) -> AccountInfo:
        ...

    @abstractmethod
    async def create_account_link(self, account_id: str, refresh_url: str, return_url: str) -> str:
        """Return a hosted onboarding URL for the account."""
        ...

    @abstractmethod
    async def create_payment_intent(self, request: PaymentIntentRequest) -> PaymentIntentResponse:
        """
        Submit a payment intent.

        Raises:
            ProviderError: On transient failure (will be retried).
            PermanentError: On non-retriable failure.
        """
        ...

    @abstractmethod
    async def create_transfer(self, request: TransferRequest) -> TransferResponse:
        ...

    @abstractmethod
    def construct_event(self, payload: bytes, signature: str) -> WebhookEvent:
        """
        Verify and parse a webhook payload.

        Raises:
            WebhookSignatureError: Signature missing or invalid.
        """
        ...
