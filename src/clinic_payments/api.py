"""HTTP surface for the clinic payment lifecycle."""

import logging
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from .config import Settings
from .connectors.base import GatewayConnectorBase
from .connectors.razorpay_connector import RazorpayConnector
from .database import get_db, init_db, close_db
from .errors import PaymentError, GatewayUnavailable, RecordNotFound
from .receipts import PartyDetails
from .services import PaymentService

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Razorpay-Signature"

# Rate limiter for the endpoints that ask the gateway for money
limiter = Limiter(key_func=get_remote_address)


def current_rate_limit() -> str:
    return Settings.from_env().rate_limit


class CreateOrderBody(BaseModel):
    amount: Optional[Decimal] = None  # major units
    appointment_id: Optional[str] = None
    patient_name: Optional[str] = None
    doctor_name: Optional[str] = None
    patient_id: Optional[str] = None
    doctor_id: Optional[str] = None


class CreateLinkBody(BaseModel):
    amount: Optional[Decimal] = None  # major units
    patient_name: Optional[str] = None
    patient_phone: Optional[str] = None
    patient_email: Optional[str] = None
    appointment_id: Optional[str] = None
    doctor_name: Optional[str] = None
    description: Optional[str] = None
    expire_in_hours: Optional[float] = None
    callback_url: Optional[str] = None
    patient_id: Optional[str] = None
    doctor_id: Optional[str] = None


class VerifyCheckoutBody(BaseModel):
    order_id: str
    payment_id: str
    signature: str


class ReceiptBody(BaseModel):
    payer: PartyDetails
    payee: PartyDetails
    payment_method: Optional[str] = None
    service_description: Optional[str] = None


def build_connector(settings: Settings) -> Optional[GatewayConnectorBase]:
    """Gateway client for this process, or None when keys are not configured."""
    if not settings.gateway_configured:
        logger.warning("Razorpay keys not configured; order and link creation disabled")
        return None
    return RazorpayConnector(
        settings.key_id,
        settings.key_secret,
        timeout=settings.gateway_timeout_seconds,
    )


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_connector(request: Request) -> GatewayConnectorBase:
    connector = getattr(request.app.state, "connector", None)
    if connector is None:
        raise GatewayUnavailable("Payment gateway not configured")
    return connector


async def payment_error_handler(request: Request, exc: PaymentError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content={"error": exc.code, "detail": exc.message},
    )


router = APIRouter()


@router.get("/health")
async def health(request: Request):
    connector = getattr(request.app.state, "connector", None)
    return {"ok": True, "gateway": connector.health_check() if connector else None}


@router.post("/payments/orders")
@limiter.limit(current_rate_limit)
async def create_order(
    request: Request,
    body: CreateOrderBody,
    connector: GatewayConnectorBase = Depends(get_connector),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db),
):
    record = await PaymentService(db).create_order(
        connector,
        body.amount,
        body.appointment_id,
        patient_name=body.patient_name,
        doctor_name=body.doctor_name,
        patient_id=body.patient_id,
        doctor_id=body.doctor_id,
        currency=settings.currency,
    )
    return {
        "payment_id": record.id,
        "order_id": record.gateway_order_id,
        "amount": record.amount,
        "currency": record.currency,
    }


@router.post("/payments/links")
@limiter.limit(current_rate_limit)
async def create_payment_link(
    request: Request,
    body: CreateLinkBody,
    connector: GatewayConnectorBase = Depends(get_connector),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db),
):
    record = await PaymentService(db).create_payment_link(
        connector,
        body.amount,
        body.patient_name,
        body.patient_phone,
        patient_email=body.patient_email,
        appointment_id=body.appointment_id,
        doctor_name=body.doctor_name,
        description=body.description,
        expire_in_hours=body.expire_in_hours,
        callback_url=body.callback_url,
        patient_id=body.patient_id,
        doctor_id=body.doctor_id,
        currency=settings.currency,
    )
    return {
        "payment_id": record.id,
        "link_id": record.payment_link_id,
        "short_url": record.short_url,
        "amount": record.amount,
        "currency": record.currency,
    }


@router.post("/payments/verify")
async def verify_checkout(
    body: VerifyCheckoutBody,
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db),
):
    record = await PaymentService(db).confirm_checkout(
        body.order_id, body.payment_id, body.signature, settings.key_secret
    )
    return {
        "verified": True,
        "payment_id": record.id,
        "status": record.status,
    }


@router.post("/payments/webhook")
async def payment_webhook(
    request: Request,
    x_razorpay_signature: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db),
):
    if not x_razorpay_signature:
        return JSONResponse(
            status_code=400,
            content={"error": "missing_signature", "detail": f"Missing {SIGNATURE_HEADER} header"},
        )
    # Raw bytes: the signature covers the body exactly as sent
    body = await request.body()
    result = await PaymentService(db).handle_webhook(body, x_razorpay_signature, settings.webhook_secret)
    return {"received": True, "outcome": result.outcome.value}


@router.get("/payments/stats")
async def payment_stats(days: int = 30, db: AsyncSession = Depends(get_db)):
    return await PaymentService(db).get_stats(days=days)


@router.get("/payments/{payment_id}")
async def get_payment(payment_id: str, db: AsyncSession = Depends(get_db)):
    record = await PaymentService(db).get_payment(payment_id)
    if record is None:
        raise RecordNotFound(f"Payment {payment_id} not found")
    return record.to_dict()


@router.get("/payments/{payment_id}/history")
async def get_payment_history(payment_id: str, db: AsyncSession = Depends(get_db)):
    service = PaymentService(db)
    if await service.get_payment(payment_id) is None:
        raise RecordNotFound(f"Payment {payment_id} not found")
    return {"payment_id": payment_id, "history": await service.get_history(payment_id)}


@router.post("/payments/{payment_id}/receipt")
async def get_receipt(payment_id: str, body: ReceiptBody, db: AsyncSession = Depends(get_db)):
    receipt = await PaymentService(db).build_receipt(
        payment_id,
        payer=body.payer,
        payee=body.payee,
        payment_method=body.payment_method,
        service_description=body.service_description,
    )
    return receipt.model_dump()


def create_app(
    settings: Optional[Settings] = None,
    connector: Optional[GatewayConnectorBase] = None,
) -> FastAPI:
    """Build the application. The gateway client is created here, once."""
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await init_db(settings.database_url)
        owned = build_connector(settings) if connector is None else None
        app.state.connector = connector if connector is not None else owned
        yield
        if isinstance(owned, RazorpayConnector):
            owned.close()
        await close_db()

    app = FastAPI(title="Clinic Payments API", lifespan=lifespan)
    app.state.settings = settings
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(PaymentError, payment_error_handler)
    app.include_router(router)
    return app


app = create_app()
