"""SQLAlchemy models for connected accounts and payments."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, relationship


class Base(DeclarativeBase):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


class User(Base):
    """
    A marketplace user.

    Project managers pay; annotators get paid and therefore own a connected
    processor account. The account country is fixed by the processor at
    creation time and cached here.
    """

    __tablename__ = "users"

    id = Column(String(50), primary_key=True, default=_new_id)
    name = Column(String(200), nullable=False)
    email = Column(String(200), nullable=True)
    role = Column(String(30), nullable=False, index=True)

    stripe_account_id = Column(String(100), nullable=True, index=True)
    stripe_account_status = Column(String(20), nullable=True, index=True)
    stripe_account_country = Column(String(2), nullable=True)
    stripe_onboarding_complete = Column(Boolean, default=False)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class Payment(Base):
    """
    One payment from a project manager to an annotator.

    amount and platform_fee are stored in major units; the processor only
    ever sees minor units. cross_border_payment is decided when the intent is
    created and is never recomputed: settlement trusts it.
    """

    __tablename__ = "payments"
    __table_args__ = (
        Index("ix_payments_payer_status_created", "payer_id", "status", "created_at"),
        Index("ix_payments_payee_status_created", "payee_id", "status", "created_at"),
    )

    id = Column(String(12), primary_key=True, default=_new_id)
    payer_id = Column(String(50), ForeignKey("users.id"), nullable=False, index=True)
    payee_id = Column(String(50), ForeignKey("users.id"), nullable=False, index=True)
    project_id = Column(String(50), nullable=True, index=True)

    amount = Column(Numeric(14, 3, asdecimal=True), nullable=False)
    currency = Column(String(3), nullable=False)
    platform_fee = Column(Numeric(14, 3, asdecimal=True), nullable=False, default=0)
    description = Column(String(500), nullable=True)
    payment_method = Column(String(30), nullable=False, default="card")

    stripe_payment_intent_id = Column(String(100), nullable=False, unique=True, index=True)
    stripe_transfer_id = Column(String(100), nullable=True)

    status = Column(String(20), nullable=False, default="pending", index=True)
    payee_country = Column(String(2), nullable=True)
    cross_border_payment = Column(Boolean, nullable=False, default=False)
    error_message = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    # Set once when a "succeeded" notification claims the record.
    settlement_started_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    payer = relationship("User", foreign_keys=[payer_id], lazy="raise")
    payee = relationship("User", foreign_keys=[payee_id], lazy="raise")
    audit_logs = relationship("AuditLog", back_populates="payment", lazy="raise")


class AuditLog(Base):
    """
    Immutable audit trail entry.

    Every decision (validation, routing, processor call, status change) gets
    an entry. Append-only, never modified.
    """

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    payment_id = Column(String(12), ForeignKey("payments.id"), nullable=True, index=True)
    user_id = Column(String(50), nullable=True, index=True)
    action = Column(String(50), nullable=False)
    details = Column(Text, nullable=True)
    timestamp = Column(DateTime(timezone=True), default=_utcnow)

    payment = relationship("Payment", back_populates="audit_logs")
