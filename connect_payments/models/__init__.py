from connect_payments.models.enums import (
    AccountStatus,
    PaymentStatus,
    ProcessorErrorCause,
    RejectReason,
    UserRole,
)
from connect_payments.models.payment import AuditLog, Base, Payment, User

__all__ = [
    "Base",
    "User",
    "Payment",
    "AuditLog",
    "AccountStatus",
    "PaymentStatus",
    "ProcessorErrorCause",
    "RejectReason",
    "UserRole",
]
