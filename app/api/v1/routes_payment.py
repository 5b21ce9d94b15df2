import logging
from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.crud.payment import crud_payment
from app.db.session import getDB_session
from app.models.payment import PaymentProvider
from app.schemas.payment import GatewayConfigResponse, PaymentResponse
from app.services.confirmation import build_result_redirect, load_template_data
from app.services.gateways import PaymentGateway, get_gateways
from app.services.notification import NotificationService, get_notification_service
from app.services.reconciliation import ReconciliationOutcome, ReconciliationStatus, reconcile

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/payment"
)
payments_router = APIRouter(
    prefix="/payments"
)

VNPAY_ACKS = {
    ReconciliationStatus.APPLIED: ("00", "Confirm Success"),
    ReconciliationStatus.ALREADY_PROCESSED: ("02", "Order already confirmed"),
    ReconciliationStatus.PAYMENT_NOT_FOUND: ("01", "Order not found"),
    ReconciliationStatus.AMOUNT_MISMATCH: ("04", "Invalid amount"),
    ReconciliationStatus.INVALID_SIGNATURE: ("97", "Invalid signature"),
    ReconciliationStatus.INVALID_PAYLOAD: ("99", "Unknown error"),
}

MOMO_MESSAGES = {
    ReconciliationStatus.APPLIED: "Payment processed",
    ReconciliationStatus.ALREADY_PROCESSED: "Payment already processed",
    ReconciliationStatus.PAYMENT_NOT_FOUND: "Order not found",
    ReconciliationStatus.AMOUNT_MISMATCH: "Invalid amount",
    ReconciliationStatus.INVALID_SIGNATURE: "Invalid signature",
    ReconciliationStatus.INVALID_PAYLOAD: "Invalid payload",
}


def momo_ack(outcome: ReconciliationOutcome) -> dict:
    return {"resultCode": 0 if outcome.accepted else 1, "message": MOMO_MESSAGES[outcome.status]}


def vnpay_ack(outcome: ReconciliationOutcome) -> dict:
    code, message = VNPAY_ACKS[outcome.status]
    return {"RspCode": code, "Message": message}


async def _browser_return(db: AsyncSession, gateway: PaymentGateway, params: dict,
                          background_tasks: BackgroundTasks, notifications: NotificationService) -> RedirectResponse:
    outcome = await reconcile(db, gateway, params)
    template_data = None
    if outcome.booking_id is not None:
        template_data = await load_template_data(db, outcome.booking_id)
        if outcome.paid:
            background_tasks.add_task(
                notifications.send_booking_confirmation, template_data["email"], template_data)
    return RedirectResponse(build_result_redirect(settings.FRONTEND_BASE_URL, outcome, template_data), status_code=302)


@router.post("/momo/callback")
async def momo_callback(
        request: Request,
        db: AsyncSession = Depends(getDB_session),
        gateways: dict[PaymentProvider, PaymentGateway] = Depends(get_gateways)):
    try:
        payload = await request.json()
    except ValueError:
        return JSONResponse(status_code=400, content={"resultCode": 1, "message": "Invalid payload"})
    if not isinstance(payload, dict):
        return JSONResponse(status_code=400, content={"resultCode": 1, "message": "Invalid payload"})
    outcome = await reconcile(db, gateways[PaymentProvider.MOMO], payload)
    return momo_ack(outcome)


@router.get("/momo/return")
async def momo_return(
        request: Request,
        background_tasks: BackgroundTasks,
        db: AsyncSession = Depends(getDB_session),
        gateways: dict[PaymentProvider, PaymentGateway] = Depends(get_gateways),
        notifications: NotificationService = Depends(get_notification_service)):
    return await _browser_return(db, gateways[PaymentProvider.MOMO], dict(request.query_params),
                                 background_tasks, notifications)


@router.get("/vnpay/ipn")
async def vnpay_ipn(
        request: Request,
        db: AsyncSession = Depends(getDB_session),
        gateways: dict[PaymentProvider, PaymentGateway] = Depends(get_gateways)):
    outcome = await reconcile(db, gateways[PaymentProvider.VNPAY], dict(request.query_params))
    return vnpay_ack(outcome)


@router.get("/vnpay/return")
async def vnpay_return(
        request: Request,
        background_tasks: BackgroundTasks,
        db: AsyncSession = Depends(getDB_session),
        gateways: dict[PaymentProvider, PaymentGateway] = Depends(get_gateways),
        notifications: NotificationService = Depends(get_notification_service)):
    return await _browser_return(db, gateways[PaymentProvider.VNPAY], dict(request.query_params),
                                 background_tasks, notifications)


@router.get("/vnpay/config", response_model=GatewayConfigResponse)
async def vnpay_config(gateways: dict[PaymentProvider, PaymentGateway] = Depends(get_gateways)):
    urls = gateways[PaymentProvider.VNPAY].callback_urls(settings.PUBLIC_BASE_URL)
    return GatewayConfigResponse(
        tmn_code=settings.VNPAY_TMN_CODE,
        pay_url=settings.VNPAY_URL,
        return_url=urls.redirect_url,
        ipn_url=urls.ipn_url,
        hash_secret_configured=bool(settings.VNPAY_HASH_SECRET.get_secret_value()),
    )


@payments_router.get("/booking/{booking_id}", response_model=list[PaymentResponse])
async def get_booking_payments(booking_id: int, db: AsyncSession = Depends(getDB_session)):
    return await crud_payment.get_booking_payments(db, booking_id)


@payments_router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(payment_id: int, db: AsyncSession = Depends(getDB_session)):
    return await crud_payment.get_payment(db, payment_id)
