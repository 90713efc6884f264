"""Liveness endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from connect_payments.api.deps import get_payment_config
from connect_payments.config import PaymentConfig
from connect_payments.database import get_session

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(
    session: AsyncSession = Depends(get_session),
    config: PaymentConfig = Depends(get_payment_config),
):
    await session.execute(text("SELECT 1"))
    return {"status": "ok", "platform_country": config.platform_country}
