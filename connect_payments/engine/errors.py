"""
Domain errors raised by the orchestrator, reconciler and account services.

Three classes of failure, handled differently:
  - PaymentRejected: validation failed. Synchronous, never retried, nothing
    written, logged at INFO.
  - ProcessorConfigurationError: the processor refused the request because a
    connected account is misconfigured. Carries a remediation message.
  - ProcessorUnavailable: transient processor failure that survived retries.
"""

from typing import Any, Optional

from connect_payments.models.enums import ProcessorErrorCause, RejectReason

REMEDIATION: dict[ProcessorErrorCause, str] = {
    ProcessorErrorCause.INVALID_ADDRESS: (
        "The payee's account has an invalid address on file. Ask the payee to "
        "update their details in onboarding."
    ),
    ProcessorErrorCause.TRANSFERS_DISALLOWED: (
        "Transfers are not allowed between the platform and this payee account. "
        "Ask the payee to complete onboarding so the transfers capability is enabled."
    ),
    ProcessorErrorCause.DESTINATION_RESTRICTED: (
        "The processor does not allow this destination for a cross-border payment. "
        "Ask the payee to complete onboarding or choose a supported currency."
    ),
    ProcessorErrorCause.UNKNOWN: "The payment processor refused the request.",
}


class PaymentRejected(Exception):
    """A payment request failed validation."""

    def __init__(self, reason: RejectReason, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.reason = reason
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "code": self.reason.value, "details": self.details}


class ProcessorConfigurationError(Exception):
    """The processor refused the request due to account configuration."""

    def __init__(self, cause: ProcessorErrorCause, processor_message: str):
        super().__init__(REMEDIATION[cause])
        self.cause = cause
        self.processor_message = processor_message

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": str(self),
            "code": self.cause.value,
            "details": {"processor_message": self.processor_message},
        }


class ProcessorUnavailable(Exception):
    """The processor could not be reached or kept failing transiently."""


class RecordNotFound(Exception):
    """No payment record matches the processor reference."""


class InvalidStatusTransition(Exception):
    """A status change would violate the payment lifecycle."""


def classify_processor_error(message: Optional[str], code: Optional[str] = None) -> ProcessorErrorCause:
    """
    Bucket a processor refusal into a known configuration cause.

    The processor reports these as free text with inconsistent codes, so
    matching is on both.
    """
    text = f"{code or ''} {message or ''}".lower()

    if "address" in text:
        return ProcessorErrorCause.INVALID_ADDRESS
    if any(s in text for s in ("cross-border", "cross_border", "on_behalf_of", "destination", "region")):
        return ProcessorErrorCause.DESTINATION_RESTRICTED
    if "transfer" in text and any(s in text for s in ("not allowed", "not_allowed", "disallowed", "cannot", "can't")):
        return ProcessorErrorCause.TRANSFERS_DISALLOWED
    return ProcessorErrorCause.UNKNOWN
