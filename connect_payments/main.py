"""
Connect Payments — cross-border marketplace payments API.

Project managers pay annotators through Stripe Connect. Each payment is
routed as a destination charge when payer and payee share the platform
country, or as an on_behalf_of charge followed by a net transfer when the
payee is abroad.

Start the server:
    uvicorn connect_payments.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from connect_payments.api.connect import router as connect_router
from connect_payments.api.health import router as health_router
from connect_payments.api.payments import router as payments_router
from connect_payments.api.webhooks import router as webhooks_router
from connect_payments.config import settings
from connect_payments.database import init_db
from connect_payments.engine.errors import (
    PaymentRejected,
    ProcessorConfigurationError,
    ProcessorUnavailable,
    RecordNotFound,
)
from connect_payments.models.enums import RejectReason

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger("connect_payments.api")

REJECTION_STATUS = {
    RejectReason.UNAUTHORIZED: 403,
    RejectReason.PAYEE_NOT_FOUND: 404,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    await init_db()
    yield


app = FastAPI(
    title="Connect Payments",
    description=(
        "Marketplace payments between project managers and annotators. "
        "Country-aware routing between destination and on_behalf_of charges, "
        "idempotent webhook settlement and an audit trail per payment."
    ),
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(PaymentRejected)
async def payment_rejected_handler(request: Request, exc: PaymentRejected):
    return JSONResponse(
        status_code=REJECTION_STATUS.get(exc.reason, 400),
        content=jsonable_encoder(exc.to_dict()),
    )


@app.exception_handler(ProcessorConfigurationError)
async def processor_configuration_handler(request: Request, exc: ProcessorConfigurationError):
    return JSONResponse(status_code=422, content=jsonable_encoder(exc.to_dict()))


@app.exception_handler(ProcessorUnavailable)
async def processor_unavailable_handler(request: Request, exc: ProcessorUnavailable):
    logger.error("Processor unavailable on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={"error": str(exc), "code": "processor_unavailable"},
    )


@app.exception_handler(RecordNotFound)
async def record_not_found_handler(request: Request, exc: RecordNotFound):
    return JSONResponse(status_code=404, content={"error": str(exc), "code": "not_found"})


app.include_router(health_router)
app.include_router(connect_router, prefix="/api")
app.include_router(payments_router, prefix="/api")
app.include_router(webhooks_router, prefix="/api")
