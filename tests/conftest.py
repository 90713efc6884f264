"""Shared test fixtures."""

from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from connect_payments.config import PaymentConfig
from connect_payments.database import build_engine, create_tables, session_factory
from connect_payments.engine.orchestrator import PaymentOrchestrator
from connect_payments.engine.reconciler import SettlementReconciler
from connect_payments.models.payment import User
from connect_payments.providers.mock_provider import MockPaymentProvider


@pytest_asyncio.fixture
async def db_engine():
    """Fresh in-memory database for each test."""
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    async with session_factory(db_engine)() as session:
        yield session


@pytest.fixture
def config():
    return PaymentConfig(platform_country="US", platform_fee_rate=Decimal("0.05"), max_retries=2)


@pytest.fixture
def provider():
    """Deterministic mock processor: no latency, no random failures."""
    p = MockPaymentProvider(failure_rate=0.0, latency_ms=0)
    p.add_account("US", account_id="acct_us")
    p.add_account("DE", account_id="acct_de")
    p.add_account("JP", account_id="acct_jp")
    p.add_account("GB", account_id="acct_gb")
    p.add_account("US", account_id="acct_moved")
    return p


@pytest.fixture
def orchestrator(config, provider):
    return PaymentOrchestrator(config, provider, retry_base_delay=0)


@pytest.fixture
def reconciler(config, provider):
    return SettlementReconciler(config, provider, retry_base_delay=0)


@pytest_asyncio.fixture
async def seeded_session(db_session: AsyncSession):
    """Database session pre-loaded with payers and payees in several countries."""
    users = [
        User(id="PM-1", name="Dana Whitfield", email="dana@example.com", role="project_manager"),
        User(id="PM-2", name="Ravi Kulkarni", email="ravi@example.com", role="project_manager"),
        User(
            id="ANN-US", name="Jordan Blake", email="jordan@example.com", role="annotator",
            stripe_account_id="acct_us", stripe_account_status="active", stripe_account_country="US",
        ),
        User(
            id="ANN-DE", name="Lena Hoffmann", email="lena@example.com", role="annotator",
            stripe_account_id="acct_de", stripe_account_status="active", stripe_account_country="DE",
        ),
        User(
            id="ANN-JP", name="Haruka Sato", email="haruka@example.com", role="annotator",
            stripe_account_id="acct_jp", stripe_account_status="active", stripe_account_country="JP",
        ),
        User(
            id="ANN-GB", name="Oliver Hughes", email="oliver@example.com", role="annotator",
            stripe_account_id="acct_gb", stripe_account_status="active", stripe_account_country="GB",
        ),
        # Cached country is stale: the processor says US.
        User(
            id="ANN-MOVED", name="Ana Costa", email="ana@example.com", role="annotator",
            stripe_account_id="acct_moved", stripe_account_status="active", stripe_account_country="DE",
        ),
        User(
            id="ANN-PENDING", name="Sam Okafor", email="sam@example.com", role="annotator",
            stripe_account_id="acct_pending", stripe_account_status="pending", stripe_account_country="US",
        ),
        User(id="ANN-NONE", name="Kim Lee", email="kim@example.com", role="annotator"),
        User(id="ADM-1", name="Ops Admin", email="ops@example.com", role="admin"),
    ]
    for user in users:
        db_session.add(user)
    await db_session.commit()

    yield db_session
