"""Shared FastAPI dependencies: caller identity, processor and policy wiring."""

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header

from connect_payments.config import PaymentConfig, settings
from connect_payments.engine.orchestrator import PaymentOrchestrator
from connect_payments.engine.reconciler import SettlementReconciler
from connect_payments.providers.base import PaymentProvider
from connect_payments.providers.mock_provider import MockPaymentProvider
from connect_payments.providers.stripe_provider import StripePaymentProvider


@lru_cache
def get_payment_config() -> PaymentConfig:
    return PaymentConfig.from_settings(settings)


@lru_cache
def get_provider() -> PaymentProvider:
    if settings.provider_backend == "mock":
        return MockPaymentProvider(
            webhook_secret=settings.stripe_webhook_secret or "whsec_mock",
            preload_demo_accounts=True,
        )
    return StripePaymentProvider(
        api_key=settings.stripe_secret_key,
        webhook_secret=settings.stripe_webhook_secret,
        timeout_seconds=settings.stripe_api_timeout_seconds,
    )


async def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> Optional[str]:
    """Caller identity, set by the authenticating gateway in front of this service."""
    return x_user_id or None


def get_orchestrator(
    config: PaymentConfig = Depends(get_payment_config),
    provider: PaymentProvider = Depends(get_provider),
) -> PaymentOrchestrator:
    return PaymentOrchestrator(config, provider)


def get_reconciler(
    config: PaymentConfig = Depends(get_payment_config),
    provider: PaymentProvider = Depends(get_provider),
) -> SettlementReconciler:
    return SettlementReconciler(config, provider)
