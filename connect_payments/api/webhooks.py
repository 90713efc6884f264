"""
Processor webhook endpoint.

POST /webhooks/stripe — verify signature, dispatch by event type.

Handled: payment_intent.succeeded / .processing / .payment_failed,
charge.refunded, account.updated. Everything else is logged and
acknowledged. A delivery for an unknown payment returns 404 so the processor
redelivers it later.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from connect_payments.api.deps import get_provider, get_reconciler
from connect_payments.database import get_session
from connect_payments.engine.accounts import apply_account_update
from connect_payments.engine.reconciler import SettlementReconciler
from connect_payments.providers.base import PaymentProvider, WebhookEvent, WebhookSignatureError

logger = logging.getLogger("connect_payments.webhooks")

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def _is_connect_intent(intent: dict) -> bool:
    transfer_data = intent.get("transfer_data") or {}
    return bool(transfer_data.get("destination") or intent.get("on_behalf_of"))


def _charge_id(intent: dict):
    charge = intent.get("latest_charge")
    if isinstance(charge, dict):  # expanded
        return charge.get("id")
    return charge


async def dispatch_event(
    session: AsyncSession,
    event: WebhookEvent,
    reconciler: SettlementReconciler,
) -> dict:
    obj = event.data
    logger.info("Processing %s (%s)", event.type, event.id)

    if event.type.startswith("payment_intent."):
        if not _is_connect_intent(obj):
            logger.info("Skipping %s - not a Connect payment: %s", event.type, obj.get("id"))
            return {"received": True, "handled": False}

        intent_id = obj["id"]
        if event.type == "payment_intent.succeeded":
            outcome = await reconciler.handle_payment_succeeded(session, intent_id, _charge_id(obj))
            return {
                "received": True,
                "handled": True,
                "success": outcome.success,
                "status": outcome.status,
                "transfer_id": outcome.transfer_id,
                "already_processed": outcome.already_processed,
            }
        if event.type == "payment_intent.processing":
            changed = await reconciler.handle_payment_processing(session, intent_id)
            return {"received": True, "handled": changed}
        if event.type == "payment_intent.payment_failed":
            last_error = obj.get("last_payment_error") or {}
            changed = await reconciler.handle_payment_failed(session, intent_id, last_error.get("message"))
            return {"received": True, "handled": changed}

    if event.type == "charge.refunded" and obj.get("payment_intent"):
        changed = await reconciler.handle_charge_refunded(session, obj["payment_intent"])
        return {"received": True, "handled": changed}

    if event.type == "account.updated":
        status = await apply_account_update(session, obj)
        return {"received": True, "handled": status is not None}

    logger.info("Unhandled event type: %s", event.type)
    return {"received": True, "handled": False}


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    session: AsyncSession = Depends(get_session),
    provider: PaymentProvider = Depends(get_provider),
    reconciler: SettlementReconciler = Depends(get_reconciler),
):
    payload = await request.body()
    signature = request.headers.get("stripe-signature", "")

    try:
        event = provider.construct_event(payload, signature)
    except WebhookSignatureError as e:
        logger.warning("Webhook signature verification failed: %s", e)
        raise HTTPException(status_code=400, detail=f"Webhook Error: {e}")

    return await dispatch_event(session, event, reconciler)
