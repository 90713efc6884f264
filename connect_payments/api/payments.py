"""
Payment endpoints.

POST /payments/intents      — Create a payment intent (project manager → annotator).
GET  /payments              — Payments made or received by the caller.
GET  /payments/{id}         — A single payment.
GET  /payments/{id}/trace   — Full audit trail for a payment.
"""

import json
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from connect_payments.api.deps import get_current_user_id, get_orchestrator
from connect_payments.database import get_session
from connect_payments.engine.orchestrator import PaymentOrchestrator
from connect_payments.engine.queries import get_my_payments
from connect_payments.models.payment import AuditLog, Payment

router = APIRouter(prefix="/payments", tags=["payments"])


class CreateIntentRequest(BaseModel):
    payee_id: str
    project_id: Optional[str] = None
    amount: str = Field(..., description="Amount in major units, e.g. '100.00'")
    description: Optional[str] = None
    currency: str = "usd"
    payment_method: str = "card"


class CreateIntentResponse(BaseModel):
    client_secret: Optional[str]
    payment_id: str
    payment_intent_id: str
    cross_border_payment: bool
    amount: float
    platform_fee: float
    currency: str
    supported_currencies: list[str]


class PaymentDetail(BaseModel):
    id: str
    payer_id: str
    payee_id: str
    project_id: Optional[str]
    amount: float
    currency: str
    platform_fee: float
    description: Optional[str]
    payment_method: str
    stripe_payment_intent_id: str
    stripe_transfer_id: Optional[str]
    status: str
    payee_country: Optional[str]
    cross_border_payment: bool
    error_message: Optional[str]
    notes: Optional[str]
    created_at: Optional[str]
    updated_at: Optional[str]


class AuditEntry(BaseModel):
    id: int
    action: str
    details: Optional[dict] = None
    timestamp: Optional[str]


class PaymentTrace(BaseModel):
    payment: PaymentDetail
    audit_trail: list[AuditEntry]


def _payment_to_detail(p: Payment) -> PaymentDetail:
    return PaymentDetail(
        id=p.id,
        payer_id=p.payer_id,
        payee_id=p.payee_id,
        project_id=p.project_id,
        amount=float(p.amount),
        currency=p.currency,
        platform_fee=float(p.platform_fee or 0),
        description=p.description,
        payment_method=p.payment_method,
        stripe_payment_intent_id=p.stripe_payment_intent_id,
        stripe_transfer_id=p.stripe_transfer_id,
        status=p.status,
        payee_country=p.payee_country,
        cross_border_payment=bool(p.cross_border_payment),
        error_message=p.error_message,
        notes=p.notes,
        created_at=p.created_at.isoformat() if p.created_at else None,
        updated_at=p.updated_at.isoformat() if p.updated_at else None,
    )


async def _visible_payment(session: AsyncSession, payment_id: str, user_id: Optional[str]) -> Payment:
    payment = await session.get(Payment, payment_id)
    if not payment or user_id not in (payment.payer_id, payment.payee_id):
        raise HTTPException(status_code=404, detail=f"Payment not found: {payment_id}")
    return payment


@router.post("/intents", response_model=CreateIntentResponse, status_code=201)
async def create_intent(
    body: CreateIntentRequest,
    user_id: Optional[str] = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
):
    """Validate, route and submit a payment intent; returns the client secret."""
    result = await orchestrator.create_payment_intent(
        session,
        payer_id=user_id,
        payee_id=body.payee_id,
        amount=body.amount,
        description=body.description,
        currency=body.currency,
        method=body.payment_method,
        project_id=body.project_id,
    )
    return CreateIntentResponse(
        client_secret=result.client_secret,
        payment_id=result.payment_id,
        payment_intent_id=result.payment_intent_id,
        cross_border_payment=result.cross_border,
        amount=float(result.amount),
        platform_fee=float(result.platform_fee),
        currency=result.currency,
        supported_currencies=result.supported_currencies,
    )


@router.get("", response_model=list[PaymentDetail])
async def list_my_payments(
    user_id: Optional[str] = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    """Payments made by a project manager or received by an annotator."""
    payments = await get_my_payments(session, user_id)
    return [_payment_to_detail(p) for p in payments]


@router.get("/{payment_id}", response_model=PaymentDetail)
async def get_payment(
    payment_id: str,
    user_id: Optional[str] = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    payment = await _visible_payment(session, payment_id, user_id)
    return _payment_to_detail(payment)


@router.get("/{payment_id}/trace", response_model=PaymentTrace)
async def get_payment_trace(
    payment_id: str,
    user_id: Optional[str] = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    """
    Full audit trail for a payment.

    Returns the payment plus every audit entry in chronological order:
    routing decision, intent creation, webhook transitions, transfer outcome.
    """
    payment = await _visible_payment(session, payment_id, user_id)

    result = await session.execute(
        select(AuditLog)
        .where(AuditLog.payment_id == payment_id)
        .order_by(AuditLog.timestamp.asc(), AuditLog.id.asc())
    )

    audit_trail = []
    for log in result.scalars().all():
        details = None
        if log.details:
            try:
                details = json.loads(log.details)
            except (json.JSONDecodeError, TypeError):
                details = {"raw": log.details}

        audit_trail.append(AuditEntry(
            id=log.id,
            action=log.action,
            details=details,
            timestamp=log.timestamp.isoformat() if log.timestamp else None,
        ))

    return PaymentTrace(payment=_payment_to_detail(payment), audit_trail=audit_trail)
