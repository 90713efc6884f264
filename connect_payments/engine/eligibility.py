"""
Payment request validation with categorized reject reasons.

Before any processor call the orchestrator verifies, in order:
  1. Caller is a project manager
  2. Payee is an annotator with an active connected account
  3. Currency is receivable in the payee's account country
  4. Method is offered in the platform's country
  5. Amount is positive and at or above the currency minimum

Each check returns a structured result so refusals can be reported and
audited by category. The first failing check wins.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from connect_payments.config import PaymentConfig
from connect_payments.engine.errors import PaymentRejected
from connect_payments.models.enums import AccountStatus, RejectReason, UserRole
from connect_payments.models.payment import User
from connect_payments.routing.currencies import currencies_for, minimum_charge, to_major_units
from connect_payments.routing.payment_methods import methods_for


@dataclass
class EligibilityResult:
    """Result of a single validation check."""

    eligible: bool
    reason: Optional[RejectReason] = None
    message: str = ""
    details: dict[str, Any] = field(default_factory=dict)

    def raise_if_rejected(self) -> None:
        if not self.eligible:
            raise PaymentRejected(self.reason or RejectReason.UNAUTHORIZED, self.message, self.details)


_OK = EligibilityResult(eligible=True)


def check_payer(payer: Optional[User]) -> EligibilityResult:
    if payer is None:
        return EligibilityResult(False, RejectReason.UNAUTHORIZED, "Unauthorized")
    if payer.role != UserRole.PROJECT_MANAGER.value:
        return EligibilityResult(False, RejectReason.UNAUTHORIZED, "Not authorized as project manager")
    return _OK


def check_payee(payee: Optional[User]) -> EligibilityResult:
    if payee is None or payee.role != UserRole.ANNOTATOR.value:
        return EligibilityResult(False, RejectReason.PAYEE_NOT_FOUND, "Payee not found or not an annotator")

    if not payee.stripe_account_id:
        return EligibilityResult(
            False,
            RejectReason.PAYEE_ACCOUNT_NOT_ACTIVE,
            "Payee has not set up their payment account yet",
            {"account_status": None},
        )

    if payee.stripe_account_status != AccountStatus.ACTIVE.value:
        return EligibilityResult(
            False,
            RejectReason.PAYEE_ACCOUNT_NOT_ACTIVE,
            "Payee has not completed payment account onboarding",
            {"account_status": payee.stripe_account_status},
        )

    return _OK


def check_currency(payee_country: str, currency: str) -> EligibilityResult:
    supported = currencies_for(payee_country)
    if currency not in supported:
        return EligibilityResult(
            False,
            RejectReason.CURRENCY_UNSUPPORTED,
            f"Currency {currency.upper()} is not supported for payees in {payee_country}. "
            f"Supported currencies: {', '.join(c.upper() for c in supported)}",
            {"currency": currency, "payee_country": payee_country, "supported_currencies": supported},
        )
    return _OK


def check_method(platform_country: str, method: str) -> EligibilityResult:
    available = methods_for(platform_country)
    if method not in available:
        return EligibilityResult(
            False,
            RejectReason.PAYMENT_METHOD_UNSUPPORTED,
            f"Payment method '{method}' is not available in {platform_country}",
            {"payment_method": method, "available_methods": sorted(available)},
        )
    return _OK


def check_amount(amount_minor: int, currency: str, config: PaymentConfig) -> EligibilityResult:
    if amount_minor <= 0:
        return EligibilityResult(
            False,
            RejectReason.INVALID_AMOUNT,
            "Amount must be positive",
            {"amount_minor": amount_minor},
        )

    minimum = minimum_charge(
        currency,
        overrides=config.minimum_charge_overrides,
        default=config.default_minimum_charge,
    )
    if amount_minor < minimum:
        minimum_major = to_major_units(minimum, currency)
        return EligibilityResult(
            False,
            RejectReason.AMOUNT_BELOW_MINIMUM,
            f"Amount is below the minimum of {minimum_major} {currency.upper()}",
            {
                "currency": currency,
                "minimum_amount": minimum_major,
                "minimum_amount_minor": minimum,
                "amount_minor": amount_minor,
            },
        )
    return _OK
