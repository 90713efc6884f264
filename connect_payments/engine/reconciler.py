"""
Settlement reconciler — completes payments when the processor confirms them.

Driven by processor webhooks. For a "payment succeeded" notification:

  pending --(not cross-border)--------------------> completed
  pending --(cross-border, transfer succeeds)-----> completed (+ transfer id)
  pending --(cross-border, transfer fails)--------> transfer_failed (+ error)

Processing and failed records settle the same way as pending ones.

Cross-border intents were created on_behalf_of the payee with no
application fee, so the funds sit on the platform balance; the net amount
(amount - platform fee) is moved with a separate transfer here. The routing
decision is read from the stored record, never recomputed.

Idempotency: webhooks are delivered at least once and possibly
concurrently. A record is claimed with a conditional UPDATE on
settlement_started_at before any side effect; a delivery that loses the
claim, or arrives for a record that is no longer settleable, is a no-op
success. Failed transfers are not retried automatically. A claim whose
settlement crashes midway is released so the next redelivery can take it
again.

A "payment failed" notification is not final: the payer may retry the same
intent, so a failed record can still be settled by a later success.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from connect_payments.audit.logger import append_note, log_event
from connect_payments.config import PaymentConfig
from connect_payments.engine.errors import InvalidStatusTransition, RecordNotFound
from connect_payments.engine.retry import BASE_DELAY, ProviderError, with_retry
from connect_payments.models.enums import ALLOWED_TRANSITIONS, PaymentStatus
from connect_payments.models.payment import Payment, User
from connect_payments.providers.base import PaymentProvider, TransferRequest
from connect_payments.routing.currencies import to_minor_units

logger = logging.getLogger("connect_payments.reconciler")

_SETTLEABLE = (PaymentStatus.PENDING.value, PaymentStatus.PROCESSING.value, PaymentStatus.FAILED.value)


@dataclass
class SettlementOutcome:
    success: bool
    payment_id: Optional[str] = None
    status: Optional[str] = None
    transfer_id: Optional[str] = None
    already_processed: bool = False
    error: Optional[str] = None


def transition(payment: Payment, new_status: PaymentStatus) -> None:
    """Move a payment to new_status, enforcing the lifecycle."""
    current = PaymentStatus(payment.status)
    if new_status not in ALLOWED_TRANSITIONS[current]:
        raise InvalidStatusTransition(
            f"Illegal payment transition for {payment.id}: {current.value} -> {new_status.value}"
        )
    payment.status = new_status.value


async def find_by_intent(session: AsyncSession, payment_intent_id: str) -> Payment:
    result = await session.execute(
        select(Payment).where(Payment.stripe_payment_intent_id == payment_intent_id)
    )
    payment = result.scalar_one_or_none()
    if payment is None:
        logger.error("No payment record for payment intent %s", payment_intent_id)
        raise RecordNotFound(f"No payment record for payment intent {payment_intent_id}")
    return payment


class SettlementReconciler:
    """Applies processor notifications to payment records."""

    def __init__(
        self,
        config: PaymentConfig,
        provider: PaymentProvider,
        retry_base_delay: float = BASE_DELAY,
    ):
        self.config = config
        self.provider = provider
        self._retry_base_delay = retry_base_delay

    async def _claim(self, session: AsyncSession, payment: Payment) -> bool:
        """Atomically mark the record as being settled. False if someone else has it."""
        result = await session.execute(
            update(Payment)
            .where(
                Payment.id == payment.id,
                Payment.settlement_started_at.is_(None),
                Payment.status.in_(_SETTLEABLE),
            )
            .values(settlement_started_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        await session.commit()
        await session.refresh(payment)
        return result.rowcount == 1

    async def handle_payment_succeeded(
        self,
        session: AsyncSession,
        payment_intent_id: str,
        charge_id: Optional[str] = None,
    ) -> SettlementOutcome:
        """
        Complete a payment after the processor reports the charge succeeded.

        charge_id is the succeeded charge; a cross-border transfer is funded
        from it rather than from the available platform balance.

        Raises:
            RecordNotFound: No payment matches the intent id.
        """
        payment = await find_by_intent(session, payment_intent_id)

        if not await self._claim(session, payment):
            logger.info(
                "Payment %s already settled or settling (status=%s); ignoring re-delivery of %s",
                payment.id,
                payment.status,
                payment_intent_id,
            )
            return SettlementOutcome(
                success=True,
                payment_id=payment.id,
                status=payment.status,
                transfer_id=payment.stripe_transfer_id,
                already_processed=True,
            )

        payment_id = payment.id
        try:
            return await self._settle(session, payment, charge_id)
        except Exception:
            logger.exception("Settlement of payment %s crashed; releasing claim", payment_id)
            await self._release(session, payment_id)
            raise

    async def _release(self, session: AsyncSession, payment_id: str) -> None:
        await session.rollback()
        await session.execute(
            update(Payment)
            .where(Payment.id == payment_id, Payment.status.in_(_SETTLEABLE))
            .values(settlement_started_at=None)
            .execution_options(synchronize_session=False)
        )
        await session.commit()

    async def _settle(
        self, session: AsyncSession, payment: Payment, charge_id: Optional[str]
    ) -> SettlementOutcome:
        payment_intent_id = payment.stripe_payment_intent_id
        if not payment.cross_border_payment:
            transition(payment, PaymentStatus.COMPLETED)
            payment.notes = append_note(payment.notes, "Charge succeeded; funds split at capture")
            await log_event(session, "payment_completed", payment_id=payment.id, details={
                "payment_intent_id": payment_intent_id,
                "cross_border": False,
            })
            await session.commit()
            logger.info("Payment %s completed (destination charge)", payment.id)
            return SettlementOutcome(success=True, payment_id=payment.id, status=payment.status)

        return await self._settle_cross_border(session, payment, charge_id)

    async def _settle_cross_border(
        self, session: AsyncSession, payment: Payment, charge_id: Optional[str]
    ) -> SettlementOutcome:
        payee = await session.get(User, payment.payee_id)
        destination = payee.stripe_account_id if payee else None

        if not destination:
            return await self._fail_transfer(
                session, payment, "Payee has no connected payment account; transfer not created"
            )

        amount_minor = to_minor_units(payment.amount, payment.currency)
        fee_minor = to_minor_units(payment.platform_fee, payment.currency)
        net_minor = amount_minor - fee_minor
        if net_minor <= 0:
            return await self._fail_transfer(
                session, payment, f"Net transfer amount is not positive ({net_minor} minor units)"
            )

        request = TransferRequest(
            amount_minor=net_minor,
            currency=payment.currency,
            destination=destination,
            idempotency_key=f"transfer:{payment.id}",
            metadata={
                "payment_id": payment.id,
                "payment_intent_id": payment.stripe_payment_intent_id,
                "original_amount_minor": str(amount_minor),
                "platform_fee_minor": str(fee_minor),
                "original_amount": str(payment.amount),
                "platform_fee": str(payment.platform_fee),
                "currency": payment.currency,
            },
            source_transaction=charge_id,
        )

        try:
            transfer = await with_retry(
                self.provider.create_transfer,
                request,
                max_retries=self.config.max_retries,
                base_delay=self._retry_base_delay,
            )
        except ProviderError as e:
            return await self._fail_transfer(session, payment, e.message)

        payment.stripe_transfer_id = transfer.id
        transition(payment, PaymentStatus.COMPLETED)
        payment.notes = append_note(payment.notes, f"Transfer {transfer.id} created for {net_minor} minor units")
        await log_event(session, "transfer_created", payment_id=payment.id, details={
            "transfer_id": transfer.id,
            "destination": destination,
            "net_minor": net_minor,
            "fee_minor": fee_minor,
            "currency": payment.currency,
        })
        await session.commit()

        logger.info(
            "Payment %s completed (cross-border): transfer=%s net=%d %s",
            payment.id,
            transfer.id,
            net_minor,
            payment.currency,
        )
        return SettlementOutcome(
            success=True, payment_id=payment.id, status=payment.status, transfer_id=transfer.id
        )

    async def _fail_transfer(self, session: AsyncSession, payment: Payment, message: str) -> SettlementOutcome:
        transition(payment, PaymentStatus.TRANSFER_FAILED)
        payment.error_message = message
        payment.notes = append_note(payment.notes, f"Transfer failed: {message}")
        await log_event(session, "transfer_failed", payment_id=payment.id, details={"error": message})
        await session.commit()
        logger.error("Payment %s transfer failed (manual follow-up required): %s", payment.id, message)
        return SettlementOutcome(success=False, payment_id=payment.id, status=payment.status, error=message)

    async def _apply(
        self,
        session: AsyncSession,
        payment_intent_id: str,
        new_status: PaymentStatus,
        action: str,
        error_message: Optional[str] = None,
    ) -> bool:
        payment = await find_by_intent(session, payment_intent_id)
        current = PaymentStatus(payment.status)

        if new_status not in ALLOWED_TRANSITIONS[current]:
            logger.info(
                "Ignoring %s for payment %s in status %s", action, payment.id, current.value
            )
            return False

        # A settlement in flight owns the record until it reaches a terminal state.
        if payment.settlement_started_at is not None and current.value in _SETTLEABLE:
            logger.info("Ignoring %s for payment %s: settlement in progress", action, payment.id)
            return False

        transition(payment, new_status)
        if error_message:
            payment.error_message = error_message
        payment.notes = append_note(payment.notes, f"{action}: {current.value} -> {new_status.value}")
        await log_event(session, action, payment_id=payment.id, details={
            "payment_intent_id": payment_intent_id,
            "from": current.value,
            "to": new_status.value,
            "error": error_message,
        })
        await session.commit()
        logger.info("Payment %s %s -> %s", payment.id, current.value, new_status.value)
        return True

    async def handle_payment_processing(self, session: AsyncSession, payment_intent_id: str) -> bool:
        return await self._apply(session, payment_intent_id, PaymentStatus.PROCESSING, "payment_processing")

    async def handle_payment_failed(
        self,
        session: AsyncSession,
        payment_intent_id: str,
        error_message: Optional[str] = None,
    ) -> bool:
        return await self._apply(
            session, payment_intent_id, PaymentStatus.FAILED, "payment_failed", error_message
        )

    async def handle_charge_refunded(self, session: AsyncSession, payment_intent_id: str) -> bool:
        return await self._apply(session, payment_intent_id, PaymentStatus.REFUNDED, "payment_refunded")
