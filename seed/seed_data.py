"""
Seed the database with demo users.

Creates:
  - 3 project managers (payers)
  - 6 annotators with fully onboarded accounts in US, DE, GB, JP, MX, IN
    (matching the mock processor's DEMO_ACCOUNTS)
  - Edge cases: an annotator mid-onboarding, one with no account at all,
    and an admin who can neither pay nor be paid

Run against the mock backend:
    PROVIDER_BACKEND=mock python -m seed.seed_data
"""

import asyncio

from connect_payments.database import async_session, init_db
from connect_payments.models.enums import AccountStatus, UserRole
from connect_payments.models.payment import User
from connect_payments.providers.mock_provider import DEMO_ACCOUNTS

PM = UserRole.PROJECT_MANAGER.value
ANNOTATOR = UserRole.ANNOTATOR.value

USERS = [
    # Payers
    {"id": "PM-001", "name": "Dana Whitfield", "email": "dana@example.com", "role": PM},
    {"id": "PM-002", "name": "Ravi Kulkarni", "email": "ravi@example.com", "role": PM},
    {"id": "PM-003", "name": "Ines Moreau", "email": "ines@example.com", "role": PM},

    # Payees with active accounts
    {"id": "ANN-US", "name": "Jordan Blake", "email": "jordan@example.com", "role": ANNOTATOR, "account": "acct_demo_us"},
    {"id": "ANN-DE", "name": "Lena Hoffmann", "email": "lena@example.com", "role": ANNOTATOR, "account": "acct_demo_de"},
    {"id": "ANN-GB", "name": "Oliver Hughes", "email": "oliver@example.com", "role": ANNOTATOR, "account": "acct_demo_gb"},
    {"id": "ANN-JP", "name": "Haruka Sato", "email": "haruka@example.com", "role": ANNOTATOR, "account": "acct_demo_jp"},
    {"id": "ANN-MX", "name": "Diego Ramirez", "email": "diego@example.com", "role": ANNOTATOR, "account": "acct_demo_mx"},
    {"id": "ANN-IN", "name": "Priya Nair", "email": "priya@example.com", "role": ANNOTATOR, "account": "acct_demo_in"},

    # Edge cases
    {"id": "ANN-NEW", "name": "Sam Okafor", "email": "sam@example.com", "role": ANNOTATOR},
    {
        "id": "ANN-HALF", "name": "Ana Costa", "email": "ana@example.com", "role": ANNOTATOR,
        "account": "acct_demo_pending", "status": AccountStatus.PENDING.value, "country": "PT",
    },
    {"id": "ADM-001", "name": "Ops Admin", "email": "ops@example.com", "role": UserRole.ADMIN.value},
]


def build_user(data: dict) -> User:
    account_id = data.get("account")
    status = data.get("status")
    if account_id in DEMO_ACCOUNTS:
        status = status or AccountStatus.ACTIVE.value
    country = data.get("country") or DEMO_ACCOUNTS.get(account_id)

    return User(
        id=data["id"],
        name=data["name"],
        email=data["email"],
        role=data["role"],
        stripe_account_id=account_id,
        stripe_account_status=status,
        stripe_account_country=country,
        stripe_onboarding_complete=status == AccountStatus.ACTIVE.value,
    )


async def seed():
    await init_db()

    async with async_session() as session:
        for data in USERS:
            existing = await session.get(User, data["id"])
            if existing:
                continue
            session.add(build_user(data))

        await session.commit()
        print(f"Seeded {len(USERS)} users")
        print("Try: curl -H 'X-User-Id: PM-001' localhost:8000/api/connect/payees/ANN-DE/currencies")


if __name__ == "__main__":
    asyncio.run(seed())
