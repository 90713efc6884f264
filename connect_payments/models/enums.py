"""Enumerations for the payments domain model."""

from enum import Enum


class PaymentStatus(str, Enum):
    """Lifecycle states for a payment record."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
    TRANSFER_FAILED = "transfer_failed"


# Monotonic: nothing ever goes back to pending.
ALLOWED_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({
        PaymentStatus.PROCESSING,
        PaymentStatus.COMPLETED,
        PaymentStatus.FAILED,
        PaymentStatus.TRANSFER_FAILED,
    }),
    PaymentStatus.PROCESSING: frozenset({
        PaymentStatus.COMPLETED,
        PaymentStatus.FAILED,
        PaymentStatus.TRANSFER_FAILED,
    }),
    PaymentStatus.COMPLETED: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.TRANSFER_FAILED: frozenset({PaymentStatus.REFUNDED}),
    # A declined intent can still be retried by the payer and succeed later.
    PaymentStatus.FAILED: frozenset({
        PaymentStatus.PROCESSING,
        PaymentStatus.COMPLETED,
        PaymentStatus.TRANSFER_FAILED,
    }),
    PaymentStatus.REFUNDED: frozenset(),
}


class AccountStatus(str, Enum):
    """Onboarding state of a payee's connected account."""

    INCOMPLETE = "incomplete"
    PENDING = "pending"
    ACTIVE = "active"


class UserRole(str, Enum):
    PROJECT_MANAGER = "project_manager"  # payer
    ANNOTATOR = "annotator"  # payee
    ADMIN = "admin"


class RejectReason(str, Enum):
    """Categorized reasons a payment intent request is refused."""

    UNAUTHORIZED = "unauthorized"
    PAYEE_NOT_FOUND = "payee_not_found"
    PAYEE_ACCOUNT_NOT_ACTIVE = "payee_account_not_active"
    COUNTRY_UNSUPPORTED = "country_unsupported"
    CURRENCY_UNSUPPORTED = "currency_unsupported"
    PAYMENT_METHOD_UNSUPPORTED = "payment_method_unsupported"
    INVALID_AMOUNT = "invalid_amount"
    AMOUNT_BELOW_MINIMUM = "amount_below_minimum"


class ProcessorErrorCause(str, Enum):
    """Account-configuration problems reported by the processor."""

    INVALID_ADDRESS = "invalid_address"
    TRANSFERS_DISALLOWED = "transfers_disallowed"
    DESTINATION_RESTRICTED = "destination_restricted"
    UNKNOWN = "unknown"
