"""
Payment intent orchestrator.

Turns a project manager's "pay this annotator" request into a processor
payment intent plus a pending Payment record. The flow:

  1. Validation (payer, payee account, currency, method, amount)
  2. Payee country resolved from the processor, not the cached column
  3. Platform fee computed in minor units
  4. Routing policy: destination charge vs on-behalf-of
  5. Processor call (retried on transient errors, idempotency key attached)
  6. Pending Payment persisted, with the routing decision frozen on it

Guarantees:
  - Validation failures write nothing and never reach the processor.
  - A Payment row exists only once the processor has accepted the intent.
  - An on-behalf-of request never carries an application fee; the fee is
    withheld by the reconciler when it transfers the net amount.
"""

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from connect_payments.audit.logger import append_note, log_event
from connect_payments.config import PaymentConfig
from connect_payments.engine import eligibility
from connect_payments.engine.errors import (
    PaymentRejected,
    ProcessorConfigurationError,
    ProcessorUnavailable,
    classify_processor_error,
)
from connect_payments.engine.retry import BASE_DELAY, PermanentError, ProviderError, with_retry
from connect_payments.models.enums import PaymentStatus, ProcessorErrorCause, RejectReason
from connect_payments.models.payment import Payment, User
from connect_payments.providers.base import PaymentIntentRequest, PaymentIntentResponse, PaymentProvider
from connect_payments.routing.countries import normalize_country
from connect_payments.routing.cross_border import RoutingDecision, RoutingStrategy, select_routing
from connect_payments.routing.currencies import (
    Number,
    currencies_for,
    normalize_currency,
    percentage_of,
    to_major_units,
    to_minor_units,
)
from connect_payments.routing.payment_methods import payment_method_types

logger = logging.getLogger("connect_payments.orchestrator")

# Sentinel project id used by the UI for payments outside any project.
DIRECT_PAYMENT_PROJECT = "direct-payment"


@dataclass
class PaymentIntentCreated:
    """What the payer's client needs to confirm the payment."""

    client_secret: Optional[str]
    payment_id: str
    payment_intent_id: str
    cross_border: bool
    amount: Decimal
    platform_fee: Decimal
    currency: str
    supported_currencies: list[str]


async def call_processor(func, *args, max_retries: int, base_delay: float = BASE_DELAY):
    """
    Run a processor call with retries and translate its failures.

    Raises:
        ProcessorConfigurationError: The processor refused the request.
        ProcessorUnavailable: Transient failures outlasted the retries.
    """
    try:
        return await with_retry(func, *args, max_retries=max_retries, base_delay=base_delay)
    except PermanentError as e:
        raise ProcessorConfigurationError(classify_processor_error(e.message, e.code), e.message) from e
    except ProviderError as e:
        raise ProcessorUnavailable(f"Payment processor unavailable: {e}") from e


class PaymentOrchestrator:
    """Creates payment intents for project manager → annotator payments."""

    def __init__(
        self,
        config: PaymentConfig,
        provider: PaymentProvider,
        retry_base_delay: float = BASE_DELAY,
    ):
        self.config = config
        self.provider = provider
        self._retry_base_delay = retry_base_delay

    async def _processor(self, func, *args):
        return await call_processor(
            func, *args, max_retries=self.config.max_retries, base_delay=self._retry_base_delay
        )

    async def create_payment_intent(
        self,
        session: AsyncSession,
        payer_id: Optional[str],
        payee_id: str,
        amount: Number,
        description: Optional[str] = None,
        currency: str = "usd",
        method: str = "card",
        project_id: Optional[str] = None,
    ) -> PaymentIntentCreated:
        """
        Validate, route and submit a payment intent.

        Raises:
            PaymentRejected: A validation check failed (nothing was written).
            ProcessorConfigurationError: The processor refused the account setup.
            ProcessorUnavailable: The processor could not be reached.
        """
        try:
            return await self._create(
                session, payer_id, payee_id, amount, description, currency, method, project_id
            )
        except PaymentRejected as e:
            logger.info(
                "Payment intent rejected: payer=%s payee=%s reason=%s - %s",
                payer_id or "-",
                payee_id,
                e.reason.value,
                e.message,
            )
            raise

    async def _create(
        self,
        session: AsyncSession,
        payer_id: Optional[str],
        payee_id: str,
        amount: Number,
        description: Optional[str],
        currency: str,
        method: str,
        project_id: Optional[str],
    ) -> PaymentIntentCreated:
        config = self.config

        # Step 1: caller
        payer = await session.get(User, payer_id) if payer_id else None
        eligibility.check_payer(payer).raise_if_rejected()

        # Step 2: payee and account state
        payee = await session.get(User, payee_id)
        eligibility.check_payee(payee).raise_if_rejected()

        # Step 3: payee country from the processor (source of truth)
        account = await self._processor(self.provider.retrieve_account, payee.stripe_account_id)
        payee_country = normalize_country(account.country) or normalize_country(payee.stripe_account_country)

        # Step 4: currency
        try:
            currency = normalize_currency(currency)
        except ValueError:
            raise PaymentRejected(
                RejectReason.CURRENCY_UNSUPPORTED,
                "Currency is required",
                {"supported_currencies": currencies_for(payee_country)},
            ) from None
        eligibility.check_currency(payee_country, currency).raise_if_rejected()

        # Step 5: method
        method = (method or "card").strip().lower()
        eligibility.check_method(config.platform_country, method).raise_if_rejected()

        # Step 6/7: amounts
        try:
            amount_minor = to_minor_units(amount, currency)
        except (ArithmeticError, ValueError):
            raise PaymentRejected(RejectReason.INVALID_AMOUNT, f"Invalid amount: {amount}", {"amount": str(amount)}) from None
        eligibility.check_amount(amount_minor, currency, config).raise_if_rejected()
        fee_minor = percentage_of(amount_minor, config.platform_fee_rate)

        # Step 8: routing
        routing = select_routing(payee_country, config.platform_country)

        if project_id == DIRECT_PAYMENT_PROJECT:
            project_id = None
        description = description or "Payment for expert services"

        request = self._build_request(
            routing, payer, payee, project_id, method, currency, amount_minor, fee_minor, description
        )

        try:
            intent: PaymentIntentResponse = await self._processor(self.provider.create_payment_intent, request)
        except ProcessorConfigurationError as e:
            if not self._should_fall_back(routing, e):
                logger.warning(
                    "Processor refused intent for payee %s (%s): %s",
                    payee.id,
                    e.cause.value,
                    e.processor_message,
                )
                raise
            logger.warning(
                "Destination charge refused for payee %s (%s); retrying as on_behalf_of",
                payee.id,
                e.processor_message,
            )
            routing = RoutingDecision(
                strategy=RoutingStrategy.ON_BEHALF_OF,
                payee_country=routing.payee_country,
                platform_country=routing.platform_country,
                label=f"{routing.label} → on behalf of (fallback)",
            )
            request = self._build_request(
                routing, payer, payee, project_id, method, currency, amount_minor, fee_minor, description
            )
            intent = await self._processor(self.provider.create_payment_intent, request)

        platform_fee = to_major_units(fee_minor, currency)
        payment = Payment(
            id=uuid.uuid4().hex[:12],
            payer_id=payer.id,
            payee_id=payee.id,
            project_id=project_id,
            amount=to_major_units(amount_minor, currency),
            currency=currency,
            platform_fee=platform_fee,
            description=description[:500],
            payment_method=method,
            stripe_payment_intent_id=intent.id,
            status=PaymentStatus.PENDING.value,
            payee_country=payee_country,
            cross_border_payment=routing.is_cross_border,
        )
        payment.notes = append_note(None, f"Intent {intent.id} created via {routing.label}")
        session.add(payment)

        if payee.stripe_account_country != payee_country:
            logger.info(
                "Refreshing cached account country for payee %s: %s -> %s",
                payee.id,
                payee.stripe_account_country,
                payee_country,
            )
            payee.stripe_account_country = payee_country

        await log_event(session, "routing_selected", payment_id=payment.id, user_id=payer.id, details={
            "payee_country": payee_country,
            "platform_country": routing.platform_country,
            "strategy": routing.strategy.value,
            "label": routing.label,
        })
        await log_event(session, "intent_created", payment_id=payment.id, user_id=payer.id, details={
            "payment_intent_id": intent.id,
            "provider": self.provider.name,
            "amount_minor": amount_minor,
            "fee_minor": fee_minor,
            "currency": currency,
            "method": method,
            "cross_border": routing.is_cross_border,
        })

        try:
            await session.commit()
        except Exception:
            await session.rollback()
            logger.error(
                "ORPHANED INTENT: processor accepted %s (%s %s, payee %s) but the payment record "
                "could not be saved; reconcile manually",
                intent.id,
                amount_minor,
                currency,
                payee.id,
                exc_info=True,
            )
            raise

        logger.info(
            "Payment %s created: intent=%s %s %s payee=%s country=%s cross_border=%s fee=%s",
            payment.id,
            intent.id,
            payment.amount,
            currency.upper(),
            payee.id,
            payee_country,
            routing.is_cross_border,
            platform_fee,
        )

        return PaymentIntentCreated(
            client_secret=intent.client_secret,
            payment_id=payment.id,
            payment_intent_id=intent.id,
            cross_border=routing.is_cross_border,
            amount=payment.amount,
            platform_fee=platform_fee,
            currency=currency,
            supported_currencies=currencies_for(payee_country),
        )

    def _should_fall_back(self, routing: RoutingDecision, error: ProcessorConfigurationError) -> bool:
        return (
            self.config.fallback_to_on_behalf_of
            and routing.strategy == RoutingStrategy.DESTINATION_CHARGE
            and error.cause == ProcessorErrorCause.DESTINATION_RESTRICTED
        )

    def _build_request(
        self,
        routing: RoutingDecision,
        payer: User,
        payee: User,
        project_id: Optional[str],
        method: str,
        currency: str,
        amount_minor: int,
        fee_minor: int,
        description: str,
    ) -> PaymentIntentRequest:
        metadata = {
            "payer_id": payer.id,
            "payee_id": payee.id,
            "project_id": project_id or "",
            "payment_method": method,
            "payee_country": routing.payee_country,
            "cross_border": "true" if routing.is_cross_border else "false",
            "platform_fee_minor": str(fee_minor),
        }
        common = dict(
            amount_minor=amount_minor,
            currency=currency,
            payment_method_types=payment_method_types(method),
            idempotency_key=f"create_intent:{payer.id}:{payee.id}:{uuid.uuid4().hex}",
            description=description,
            metadata=metadata,
        )

        if routing.strategy == RoutingStrategy.ON_BEHALF_OF:
            return PaymentIntentRequest(on_behalf_of=payee.stripe_account_id, **common)

        return PaymentIntentRequest(
            application_fee_amount=fee_minor,
            destination=payee.stripe_account_id,
            **common,
        )
