"""
Connected payee account onboarding and status tracking.

An annotator gets one processor account, opened in the country they pick at
onboarding and requesting the capabilities that country allows. The
processor fixes the country at creation; asking again for an existing account
only issues a fresh onboarding link.
"""

import logging
from typing import Any, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from connect_payments.audit.logger import log_event
from connect_payments.config import PaymentConfig
from connect_payments.engine.errors import PaymentRejected
from connect_payments.engine.orchestrator import call_processor
from connect_payments.models.enums import AccountStatus, RejectReason, UserRole
from connect_payments.models.payment import User
from connect_payments.providers.base import AccountInfo, PaymentProvider
from connect_payments.routing.capabilities import capability_request
from connect_payments.routing.countries import SUPPORTED_COUNTRIES, normalize_country

logger = logging.getLogger("connect_payments.accounts")


def derive_account_status(details_submitted: bool, charges_enabled: bool, payouts_enabled: bool) -> AccountStatus:
    if details_submitted and charges_enabled and payouts_enabled:
        return AccountStatus.ACTIVE
    if details_submitted:
        return AccountStatus.PENDING
    return AccountStatus.INCOMPLETE


async def _load_user(session: AsyncSession, user_id: Optional[str]) -> User:
    user = await session.get(User, user_id) if user_id else None
    if user is None:
        raise PaymentRejected(RejectReason.UNAUTHORIZED, "Unauthorized")
    return user


async def create_connect_account(
    session: AsyncSession,
    user_id: Optional[str],
    country: Optional[str],
    provider: PaymentProvider,
    config: PaymentConfig,
) -> str:
    """
    Create (or resume) onboarding for an annotator. Returns the onboarding URL.

    Raises:
        PaymentRejected: caller is not an annotator, or the country is unsupported.
    """
    user = await _load_user(session, user_id)
    if user.role != UserRole.ANNOTATOR.value:
        raise PaymentRejected(RejectReason.UNAUTHORIZED, "Only annotators can create payment accounts")

    requested = normalize_country(country)

    if user.stripe_account_id:
        if requested and user.stripe_account_country and requested != user.stripe_account_country:
            # Country is fixed on the processor side; keep the existing account.
            logger.warning(
                "User %s asked for country %s but account %s is in %s; keeping existing account",
                user.id,
                requested,
                user.stripe_account_id,
                user.stripe_account_country,
            )
        return await call_processor(
            provider.create_account_link,
            user.stripe_account_id,
            config.onboarding_refresh_url,
            config.onboarding_return_url,
            max_retries=config.max_retries,
        )

    requested = requested or config.platform_country
    if requested not in SUPPORTED_COUNTRIES:
        raise PaymentRejected(
            RejectReason.COUNTRY_UNSUPPORTED,
            f"Country {requested} is not supported for payment accounts",
            {"country": requested, "supported_countries": sorted(SUPPORTED_COUNTRIES)},
        )

    capabilities = capability_request(requested)
    account = await call_processor(
        provider.create_account,
        requested,
        user.email,
        capabilities,
        {"user_id": user.id},
        user.name,
        max_retries=config.max_retries,
    )
    url = await call_processor(
        provider.create_account_link,
        account.id,
        config.onboarding_refresh_url,
        config.onboarding_return_url,
        max_retries=config.max_retries,
    )

    user.stripe_account_id = account.id
    user.stripe_account_country = normalize_country(account.country) or requested
    user.stripe_account_status = AccountStatus.INCOMPLETE.value
    await log_event(session, "account_created", user_id=user.id, details={
        "account_id": account.id,
        "country": user.stripe_account_country,
        "capabilities": sorted(capabilities),
    })
    await session.commit()

    logger.info("Created connected account %s (%s) for user %s", account.id, requested, user.id)
    return url


async def _apply_account(session: AsyncSession, user: User, account: AccountInfo) -> AccountStatus:
    status = derive_account_status(account.details_submitted, account.charges_enabled, account.payouts_enabled)
    changed = user.stripe_account_status != status.value

    if changed:
        logger.info(
            "Account %s for user %s: %s -> %s",
            account.id,
            user.id,
            user.stripe_account_status,
            status.value,
        )
        await log_event(session, "account_status_changed", user_id=user.id, details={
            "account_id": account.id,
            "from": user.stripe_account_status,
            "to": status.value,
        })
        user.stripe_account_status = status.value

    if status == AccountStatus.ACTIVE:
        user.stripe_onboarding_complete = True
    if account.country and not user.stripe_account_country:
        user.stripe_account_country = normalize_country(account.country)

    await session.commit()
    return status


async def refresh_account_status(
    session: AsyncSession,
    user_id: Optional[str],
    provider: PaymentProvider,
    config: PaymentConfig,
) -> Optional[AccountStatus]:
    """Re-read the caller's account from the processor. None if no account yet."""
    user = await _load_user(session, user_id)
    if not user.stripe_account_id:
        return None

    account = await call_processor(
        provider.retrieve_account, user.stripe_account_id, max_retries=config.max_retries
    )
    return await _apply_account(session, user, account)


async def apply_account_update(session: AsyncSession, account: Mapping[str, Any]) -> Optional[AccountStatus]:
    """Handle an account.updated notification. None if no user owns the account."""
    account_id = account.get("id")
    result = await session.execute(select(User).where(User.stripe_account_id == account_id))
    user = result.scalar_one_or_none()
    if user is None:
        logger.error("No user found with account id %s", account_id)
        return None

    info = AccountInfo(
        id=account_id,
        country=account.get("country") or "",
        email=account.get("email"),
        details_submitted=bool(account.get("details_submitted")),
        charges_enabled=bool(account.get("charges_enabled")),
        payouts_enabled=bool(account.get("payouts_enabled")),
    )
    return await _apply_account(session, user, info)
