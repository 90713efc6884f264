"""Read-only projections over the lookup tables and stored payments."""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from connect_payments.config import PaymentConfig
from connect_payments.engine.errors import PaymentRejected
from connect_payments.engine.orchestrator import call_processor
from connect_payments.models.enums import RejectReason, UserRole
from connect_payments.models.payment import Payment, User
from connect_payments.providers.base import PaymentProvider
from connect_payments.routing.capabilities import supports_card_payments
from connect_payments.routing.countries import COUNTRY_NAMES, SUPPORTED_COUNTRIES, normalize_country
from connect_payments.routing.cross_border import needs_cross_border
from connect_payments.routing.currencies import currencies_for
from connect_payments.routing.payment_methods import methods_for


@dataclass
class CountryInfo:
    code: str
    name: str
    currencies: list[str]
    payment_methods: list[str]
    card_payments: bool
    cross_border: bool


@dataclass
class PayeeCurrencies:
    payee_id: str
    payee_country: str
    supported_currencies: list[str]
    cross_border: bool


def get_supported_countries_info(platform_country: str) -> list[CountryInfo]:
    return [
        CountryInfo(
            code=code,
            name=COUNTRY_NAMES.get(code, code),
            currencies=currencies_for(code),
            payment_methods=sorted(methods_for(code)),
            card_payments=supports_card_payments(code),
            cross_border=needs_cross_border(code, platform_country),
        )
        for code in sorted(SUPPORTED_COUNTRIES)
    ]


async def get_my_payments(session: AsyncSession, user_id: Optional[str]) -> list[Payment]:
    """Payments made (project manager) or received (annotator), newest first."""
    user = await session.get(User, user_id) if user_id else None
    if user is None:
        raise PaymentRejected(RejectReason.UNAUTHORIZED, "Unauthorized")

    if user.role == UserRole.PROJECT_MANAGER.value:
        column = Payment.payer_id
    elif user.role == UserRole.ANNOTATOR.value:
        column = Payment.payee_id
    else:
        raise PaymentRejected(RejectReason.UNAUTHORIZED, "Invalid user role")

    result = await session.execute(
        select(Payment).where(column == user.id).order_by(Payment.created_at.desc())
    )
    return list(result.scalars().all())


async def get_payee_supported_currencies(
    session: AsyncSession,
    payee_id: str,
    provider: PaymentProvider,
    config: PaymentConfig,
) -> PayeeCurrencies:
    payee = await session.get(User, payee_id)
    if payee is None or payee.role != UserRole.ANNOTATOR.value:
        raise PaymentRejected(RejectReason.PAYEE_NOT_FOUND, "Payee not found or not an annotator")
    if not payee.stripe_account_id:
        raise PaymentRejected(
            RejectReason.PAYEE_ACCOUNT_NOT_ACTIVE, "Payee has not set up their payment account yet"
        )

    account = await call_processor(
        provider.retrieve_account, payee.stripe_account_id, max_retries=config.max_retries
    )
    country = normalize_country(account.country) or normalize_country(payee.stripe_account_country)
    return PayeeCurrencies(
        payee_id=payee.id,
        payee_country=country,
        supported_currencies=currencies_for(country),
        cross_border=needs_cross_border(country, config.platform_country),
    )
