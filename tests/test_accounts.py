"""Tests for connected account onboarding and status tracking."""

import json

import pytest
from sqlalchemy import select

from connect_payments.engine.accounts import (
    apply_account_update,
    create_connect_account,
    derive_account_status,
    refresh_account_status,
)
from connect_payments.engine.errors import PaymentRejected
from connect_payments.models.enums import AccountStatus, RejectReason
from connect_payments.models.payment import AuditLog, User


class TestDeriveStatus:
    def test_fully_enabled(self):
        assert derive_account_status(True, True, True) == AccountStatus.ACTIVE

    def test_submitted_but_not_enabled(self):
        assert derive_account_status(True, True, False) == AccountStatus.PENDING
        assert derive_account_status(True, False, False) == AccountStatus.PENDING

    def test_nothing_submitted(self):
        assert derive_account_status(False, True, True) == AccountStatus.INCOMPLETE


@pytest.mark.asyncio
async def test_create_account_requests_country_capabilities(seeded_session, provider, config):
    url = await create_connect_account(seeded_session, "ANN-NONE", "mx", provider, config)

    assert url.startswith("https://connect.mock/setup/")
    user = await seeded_session.get(User, "ANN-NONE")
    assert user.stripe_account_id in provider.accounts
    assert user.stripe_account_country == "MX"
    assert user.stripe_account_status == "incomplete"

    account = provider.accounts[user.stripe_account_id]
    assert set(account.capabilities) == {"transfers"}  # no card acquiring in MX

    log = (await seeded_session.execute(
        select(AuditLog).where(AuditLog.user_id == "ANN-NONE", AuditLog.action == "account_created")
    )).scalar_one()
    assert json.loads(log.details)["country"] == "MX"


@pytest.mark.asyncio
async def test_create_account_defaults_to_platform_country(seeded_session, provider, config):
    await create_connect_account(seeded_session, "ANN-NONE", None, provider, config)
    user = await seeded_session.get(User, "ANN-NONE")
    assert user.stripe_account_country == "US"


@pytest.mark.asyncio
async def test_unsupported_country_rejected(seeded_session, provider, config):
    with pytest.raises(PaymentRejected) as exc_info:
        await create_connect_account(seeded_session, "ANN-NONE", "RU", provider, config)

    assert exc_info.value.reason == RejectReason.COUNTRY_UNSUPPORTED
    assert "DE" in exc_info.value.details["supported_countries"]
    user = await seeded_session.get(User, "ANN-NONE")
    assert user.stripe_account_id is None


@pytest.mark.asyncio
@pytest.mark.parametrize("user_id", [None, "PM-1", "ADM-1", "NOBODY"])
async def test_only_annotators_onboard(seeded_session, provider, config, user_id):
    with pytest.raises(PaymentRejected) as exc_info:
        await create_connect_account(seeded_session, user_id, "US", provider, config)
    assert exc_info.value.reason == RejectReason.UNAUTHORIZED


@pytest.mark.asyncio
async def test_existing_account_gets_new_link_only(seeded_session, provider, config, caplog):
    accounts_before = dict(provider.accounts)

    url = await create_connect_account(seeded_session, "ANN-DE", "FR", provider, config)

    assert "acct_de" in url
    assert provider.accounts == accounts_before
    user = await seeded_session.get(User, "ANN-DE")
    assert user.stripe_account_country == "DE"
    assert any("keeping existing account" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_refresh_status_activates(seeded_session, provider, config):
    await create_connect_account(seeded_session, "ANN-NONE", "GB", provider, config)
    user = await seeded_session.get(User, "ANN-NONE")

    account = provider.accounts[user.stripe_account_id]
    account.details_submitted = True
    assert await refresh_account_status(seeded_session, "ANN-NONE", provider, config) == AccountStatus.PENDING

    account.charges_enabled = True
    account.payouts_enabled = True
    assert await refresh_account_status(seeded_session, "ANN-NONE", provider, config) == AccountStatus.ACTIVE

    user = await seeded_session.get(User, "ANN-NONE")
    assert user.stripe_account_status == "active"
    assert user.stripe_onboarding_complete is True


@pytest.mark.asyncio
async def test_refresh_without_account(seeded_session, provider, config):
    assert await refresh_account_status(seeded_session, "ANN-NONE", provider, config) is None


@pytest.mark.asyncio
async def test_account_updated_notification(seeded_session):
    status = await apply_account_update(seeded_session, {
        "id": "acct_pending",
        "country": "US",
        "details_submitted": True,
        "charges_enabled": True,
        "payouts_enabled": True,
    })

    assert status == AccountStatus.ACTIVE
    user = await seeded_session.get(User, "ANN-PENDING")
    assert user.stripe_account_status == "active"

    changes = (await seeded_session.execute(
        select(AuditLog).where(AuditLog.action == "account_status_changed")
    )).scalars().all()
    assert len(changes) == 1
    assert json.loads(changes[0].details) == {"account_id": "acct_pending", "from": "pending", "to": "active"}


@pytest.mark.asyncio
async def test_account_updated_for_unknown_account(seeded_session):
    assert await apply_account_update(seeded_session, {"id": "acct_nobody"}) is None
