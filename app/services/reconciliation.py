"""
Applies provider callbacks to payments and bookings.

Each callback is verified first; nothing is written for a payload whose
signature does not check out. The booking row is locked before the payment
row, the same order cancellation and expiry use.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

from app.crud.booking import crud_booking
from app.db.session import atomic
from app.models.booking import BookingStatus, PaymentMethod
from app.models.payment import Payment, PaymentStatus
from app.services.gateways import CallbackResult, PaymentGateway


logger = logging.getLogger(__name__)


class ReconciliationStatus(str, Enum):
    APPLIED = "APPLIED"
    ALREADY_PROCESSED = "ALREADY_PROCESSED"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    INVALID_PAYLOAD = "INVALID_PAYLOAD"
    PAYMENT_NOT_FOUND = "PAYMENT_NOT_FOUND"
    AMOUNT_MISMATCH = "AMOUNT_MISMATCH"


@dataclass
class ReconciliationOutcome:
    status: ReconciliationStatus
    callback: Optional[CallbackResult] = None
    payment_id: Optional[int] = None
    payment_status: Optional[PaymentStatus] = None
    booking_id: Optional[int] = None
    booking_status: Optional[BookingStatus] = None

    @property
    def accepted(self) -> bool:
        return self.status in (ReconciliationStatus.APPLIED, ReconciliationStatus.ALREADY_PROCESSED)

    @property
    def paid(self) -> bool:
        return self.accepted and self.payment_status == PaymentStatus.SUCCESS


async def _find_payment_id(db: AsyncSession, gateway: PaymentGateway, callback: CallbackResult) -> Optional[int]:
    stmt = (select(Payment.id)
            .where(Payment.order_id == callback.order_id)
            .where(Payment.provider == gateway.provider)
            .order_by(Payment.created_at.desc(), Payment.id.desc())
            .limit(1))
    if callback.booking_id is not None:
        stmt = stmt.where(Payment.booking_id == callback.booking_id)
    return await db.scalar(stmt)


async def reconcile(db: AsyncSession, gateway: PaymentGateway, payload: Mapping[str, Any]) -> ReconciliationOutcome:
    provider = gateway.provider.value
    if not gateway.verify_callback_signature(payload):
        logger.warning(f"Rejected {provider} callback with invalid signature for order {payload.get('orderId') or payload.get('vnp_TxnRef')}")
        return ReconciliationOutcome(ReconciliationStatus.INVALID_SIGNATURE)
    try:
        callback = gateway.parse_callback(payload)
    except (TypeError, ValueError) as e:
        logger.warning(f"Rejected malformed {provider} callback: {e}")
        return ReconciliationOutcome(ReconciliationStatus.INVALID_PAYLOAD)

    async with atomic(db):
        payment_id = await _find_payment_id(db, gateway, callback)
        if payment_id is None:
            logger.warning(f"No {provider} payment for order {callback.order_id}")
            return ReconciliationOutcome(ReconciliationStatus.PAYMENT_NOT_FOUND, callback)

        booking_id = await db.scalar(select(Payment.booking_id).where(Payment.id == payment_id))
        booking = await crud_booking.lock_booking(db, booking_id)
        payment = (await db.execute(
            select(Payment)
            .where(Payment.id == payment_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )).scalar_one()

        if payment.status.is_terminal:
            if callback.success and payment.status == PaymentStatus.FAILED:
                # money arrived for seats that were already released
                logger.error(f"Payment {payment.id} for booking {booking.booking_code} succeeded after it was failed, refund required")
            else:
                logger.info(f"Payment {payment.id} already {payment.status.value}, ignoring replayed callback")
            return ReconciliationOutcome(ReconciliationStatus.ALREADY_PROCESSED, callback, payment.id,
                                         payment.status, booking.id, booking.status)

        if callback.amount != payment.amount:
            logger.warning(f"Payment {payment.id} amount mismatch: expected {payment.amount}, got {callback.amount}")
            return ReconciliationOutcome(ReconciliationStatus.AMOUNT_MISMATCH, callback, payment.id,
                                         payment.status, booking.id, booking.status)

        payment.transaction_id = callback.transaction_id
        payment.result_code = callback.result_code
        payment.message = callback.message
        payment.signature = callback.signature
        if callback.success:
            payment.status = PaymentStatus.SUCCESS
            if booking.status == BookingStatus.PENDING:
                booking.status = BookingStatus.CONFIRMED
                booking.payment_method = PaymentMethod(gateway.provider.value)
        else:
            payment.status = PaymentStatus.FAILED
            await db.flush()
            if booking.status == BookingStatus.PENDING:
                await crud_booking.cancel_locked(db, booking, f"Payment failed: {callback.message}")
        await db.flush()
        logger.info(f"Payment {payment.id} for booking {booking.booking_code} is {payment.status.value}")
        return ReconciliationOutcome(ReconciliationStatus.APPLIED, callback, payment.id,
                                     payment.status, booking.id, booking.status)
