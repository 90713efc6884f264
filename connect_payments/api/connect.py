"""
Connected account endpoints.

POST /connect/accounts                   — Start or resume annotator onboarding.
GET  /connect/accounts/status            — Refresh the caller's account status.
GET  /connect/countries                  — Supported countries with currencies and methods.
GET  /connect/payees/{id}/currencies     — Currencies a given payee can receive.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from connect_payments.api.deps import get_current_user_id, get_payment_config, get_provider
from connect_payments.config import PaymentConfig
from connect_payments.database import get_session
from connect_payments.engine.accounts import create_connect_account, refresh_account_status
from connect_payments.engine.queries import get_payee_supported_currencies, get_supported_countries_info
from connect_payments.providers.base import PaymentProvider

router = APIRouter(prefix="/connect", tags=["connect"])


class CreateAccountRequest(BaseModel):
    country: Optional[str] = None


class OnboardingLink(BaseModel):
    url: str


class AccountStatusResponse(BaseModel):
    status: Optional[str]


class CountryInfoResponse(BaseModel):
    code: str
    name: str
    currencies: list[str]
    payment_methods: list[str]
    card_payments: bool
    cross_border: bool


class PayeeCurrenciesResponse(BaseModel):
    payee_id: str
    payee_country: str
    supported_currencies: list[str]
    cross_border: bool


@router.post("/accounts", response_model=OnboardingLink)
async def create_account(
    body: CreateAccountRequest,
    user_id: Optional[str] = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    provider: PaymentProvider = Depends(get_provider),
    config: PaymentConfig = Depends(get_payment_config),
):
    url = await create_connect_account(session, user_id, body.country, provider, config)
    return OnboardingLink(url=url)


@router.get("/accounts/status", response_model=AccountStatusResponse)
async def account_status(
    user_id: Optional[str] = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    provider: PaymentProvider = Depends(get_provider),
    config: PaymentConfig = Depends(get_payment_config),
):
    status = await refresh_account_status(session, user_id, provider, config)
    return AccountStatusResponse(status=status.value if status else None)


@router.get("/countries", response_model=list[CountryInfoResponse])
async def supported_countries(config: PaymentConfig = Depends(get_payment_config)):
    return [CountryInfoResponse(**vars(info)) for info in get_supported_countries_info(config.platform_country)]


@router.get("/payees/{payee_id}/currencies", response_model=PayeeCurrenciesResponse)
async def payee_currencies(
    payee_id: str,
    session: AsyncSession = Depends(get_session),
    provider: PaymentProvider = Depends(get_provider),
    config: PaymentConfig = Depends(get_payment_config),
):
    result = await get_payee_supported_currencies(session, payee_id, provider, config)
    return PayeeCurrenciesResponse(**vars(result))
