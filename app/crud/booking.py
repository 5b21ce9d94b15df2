import asyncio
import logging
import math
import secrets
import string
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.sql import func, select, update

from app.core.config import get_settings
from app.core.exceptions import (
    BookingCodeCollisionError,
    BookingError,
    BookingPaymentError,
    InternalError,
    InvalidStatusTransitionError,
    NotFoundError,
    SeatConflictError,
    ValidationError,
)
from app.crud.showtime import crud_showtime
from app.crud.user import crud_user
from app.db.session import atomic
from app.models.Seat import Seat
from app.models.Showtime import Showtime
from app.models.booking import Booking, BookingStatus
from app.models.booking_seat import ACTIVE_SEAT_INDEX, BookingSeat, BookingSeatStatus
from app.models.payment import Payment, PaymentStatus
from app.schemas.booking import BookingCreate, BookingUpdate
from app.services.blob_store import BlobStore
from app.services.gateways import PaymentGateway, PaymentRedirect
from app.services.pricing import PricingPolicy, classify_rider, compute_price, to_gateway_amount


settings = get_settings()
logger = logging.getLogger(__name__)

BOOKING_CODE_ALPHABET = string.digits + string.ascii_lowercase
BOOKING_CODE_CONSTRAINT = "booking_code"


def generate_booking_code() -> str:
    suffix = "".join(secrets.choice(BOOKING_CODE_ALPHABET) for _ in range(7))
    return f"BK-{int(time.time() * 1000)}-{suffix}"


def _is_booking_code_collision(error: IntegrityError) -> bool:
    message = str(error.orig)
    return BOOKING_CODE_CONSTRAINT in message and ACTIVE_SEAT_INDEX not in message


@dataclass
class BookingResult:
    booking: Booking
    showtime: Showtime
    seats: list[Seat]


@dataclass
class GatewayBookingResult:
    result: BookingResult
    payment: Payment
    redirect: PaymentRedirect


class CRUDBooking:
    # .1 resolve the showtime and its seats. always db is source of truth.
    # .2 advisory check for seats already held by an active booking.
    # .3 resolve the user and price the seats for their rider class.
    # .4 insert booking + booking seats in one transaction.
    # .5 the partial unique index settles any race the advisory check missed.

    def _validate_seat_ids(self, seat_ids: Sequence[int]) -> list[int]:
        if not seat_ids:
            raise ValidationError("At least one seat is required", details={"seat_ids": []})
        invalid = [seat_id for seat_id in seat_ids if seat_id <= 0]
        if invalid:
            raise ValidationError(f"Invalid seat ids: {invalid}", details={"seat_ids": invalid})
        duplicates = sorted({seat_id for seat_id in seat_ids if list(seat_ids).count(seat_id) > 1})
        if duplicates:
            raise ValidationError(f"Duplicate seat ids: {duplicates}", details={"seat_ids": duplicates})
        return list(seat_ids)

    async def _contested_seat_ids(self, db: AsyncSession, showtime_id: int, seat_ids: Sequence[int]) -> list[int]:
        async with atomic(db):
            result = await db.scalars(
                select(BookingSeat.seat_id)
                .where(BookingSeat.showtime_id == showtime_id)
                .where(BookingSeat.seat_id.in_(seat_ids))
                .where(BookingSeat.status == BookingSeatStatus.BOOKED)
            )
            return sorted(result.all())

    async def create_booking(self, db: AsyncSession, data: BookingCreate,
                             blob_store: Optional[BlobStore] = None,
                             policy: Optional[PricingPolicy] = None) -> BookingResult:
        seat_ids = self._validate_seat_ids(data.seat_ids)
        policy = policy or PricingPolicy.from_settings(settings)
        image_url = None
        if blob_store is not None:
            image_url = await blob_store.upload_image(data.image_base64, f"booking-{data.user_id}-{data.showtime_id}")

        attempts = settings.BOOKING_CODE_MAX_ATTEMPTS
        for attempt in range(1, attempts + 1):
            booking_code = generate_booking_code()
            try:
                async with atomic(db):
                    showtime = await crud_showtime.get_showtime(db, data.showtime_id, with_details=True)
                    seats = await crud_showtime.get_seats_for_showtime(db, showtime, seat_ids)
                    taken = await crud_showtime.find_booked_seat_ids(db, showtime.id, seat_ids)
                    if taken:
                        raise SeatConflictError(taken)
                    user = await crud_user.get_user(db, data.user_id)
                    total_price = compute_price(seats, classify_rider(user.role), showtime, policy)

                    booking = Booking(
                        booking_code=booking_code,
                        user_id=user.id,
                        showtime_id=showtime.id,
                        status=BookingStatus.PENDING,
                        total_price=total_price,
                        booking_date=datetime.now(timezone.utc),
                        first_name=data.first_name or user.first_name,
                        last_name=data.last_name or user.last_name,
                        email=data.email or user.email,
                        phone_number=data.phone_number or user.phone_number,
                        payment_method=data.payment_method,
                        promotion_id=data.promotion_id,
                        image_url=image_url,
                        seats=[
                            BookingSeat(showtime_id=showtime.id, seat_id=seat.id, status=BookingSeatStatus.BOOKED)
                            for seat in seats
                        ],
                    )
                    db.add(booking)
                    await db.flush()
            except IntegrityError as e:
                if _is_booking_code_collision(e):
                    logger.warning(f"Booking code {booking_code} collided (attempt {attempt}/{attempts})")
                    continue
                contested = await self._contested_seat_ids(db, data.showtime_id, seat_ids)
                logger.info(f"Lost seat race on showtime {data.showtime_id}: {contested or seat_ids}")
                raise SeatConflictError(contested or seat_ids) from e
            except SQLAlchemyError as e:
                logger.error(f"Failed to create booking for user {data.user_id}: {e}", exc_info=True)
                raise InternalError() from e

            logger.info(f"Booking {booking.booking_code} created for user {booking.user_id}, total {booking.total_price}")
            return BookingResult(booking=booking, showtime=showtime, seats=seats)

        raise BookingCodeCollisionError(attempts)

    async def create_booking_with_gateway_payment(self, db: AsyncSession, gateway: PaymentGateway,
                                                  data: BookingCreate, public_base_url: str,
                                                  client_ip: str = "127.0.0.1",
                                                  blob_store: Optional[BlobStore] = None) -> GatewayBookingResult:
        """
        The booking commits first so its seats are held while the provider is
        called outside any transaction. If the provider or the payment insert
        fails, the booking is cancelled again and its seats released.
        """
        result = await self.create_booking(db, data, blob_store=blob_store)
        booking = result.booking
        try:
            redirect = await gateway.create_payment_request(
                order_id=booking.booking_code,
                amount=to_gateway_amount(booking.total_price),
                description=f"Thanh toan ve xem phim {booking.booking_code}",
                callback_urls=gateway.callback_urls(public_base_url),
                client_ip=client_ip,
                extra_data=str(booking.id),
            )
            async with atomic(db):
                payment = Payment(
                    booking_id=booking.id,
                    order_id=redirect.order_id,
                    request_id=redirect.request_id,
                    amount=redirect.amount,
                    provider=gateway.provider,
                    status=PaymentStatus.PENDING,
                    pay_url=redirect.pay_url,
                )
                db.add(payment)
                await db.flush()
        except BookingError as e:
            await self._compensate(db, booking.id, f"Payment request failed: {e.message}")
            raise BookingPaymentError(booking.booking_code, e) from e
        except SQLAlchemyError as e:
            logger.error(f"Failed to record payment for booking {booking.booking_code}: {e}", exc_info=True)
            await self._compensate(db, booking.id, "Payment could not be recorded")
            raise BookingPaymentError(booking.booking_code, InternalError()) from e
        except asyncio.CancelledError:
            await self._compensate(db, booking.id, "Payment request was interrupted")
            raise

        logger.info(f"Payment {payment.id} opened with {gateway.provider.value} for booking {booking.booking_code}")
        return GatewayBookingResult(result=result, payment=payment, redirect=redirect)

    async def _compensate(self, db: AsyncSession, booking_id: int, reason: str) -> None:
        try:
            await self.cancel_booking(db, booking_id, reason=reason)
        except (BookingError, SQLAlchemyError) as e:
            # the expiry sweep picks the booking up later
            logger.error(f"Compensating cancel of booking {booking_id} failed: {e}", exc_info=True)

    async def lock_booking(self, db: AsyncSession, booking_id: int) -> Booking:
        result = await db.execute(
            select(Booking)
            .where(Booking.id == booking_id)
            .with_for_update()  # pesimistic locking
            .execution_options(populate_existing=True)
        )
        booking = result.scalar_one_or_none()
        if booking is None:
            raise NotFoundError("Booking", booking_id)
        return booking

    async def cancel_locked(self, db: AsyncSession, booking: Booking, reason: str) -> None:
        """Caller holds the booking row lock; seats and open payments go with it."""
        booking.status = BookingStatus.CANCELLED
        await db.execute(
            update(BookingSeat)
            .where(BookingSeat.booking_id == booking.id)
            .where(BookingSeat.status == BookingSeatStatus.BOOKED)
            .values(status=BookingSeatStatus.CANCELLED)
        )
        await db.execute(
            update(Payment)
            .where(Payment.booking_id == booking.id)
            .where(Payment.status == PaymentStatus.PENDING)
            .values(status=PaymentStatus.FAILED, message=reason)
        )
        await db.flush()
        logger.info(f"Booking {booking.booking_code} cancelled: {reason}")

    async def cancel_booking(self, db: AsyncSession, booking_id: int, reason: str = "Cancelled by user") -> Booking:
        async with atomic(db):
            booking = await self.lock_booking(db, booking_id)
            if booking.status == BookingStatus.CANCELLED:
                logger.info(f"Booking {booking.booking_code} already cancelled")
            elif booking.status != BookingStatus.PENDING:
                raise InvalidStatusTransitionError(booking.status, BookingStatus.CANCELLED)
            else:
                await self.cancel_locked(db, booking, reason)
        return await self.get_booking(db, booking_id)

    async def update_booking(self, db: AsyncSession, booking_id: int, data: BookingUpdate,
                             blob_store: Optional[BlobStore] = None) -> Booking:
        changes = data.model_dump(exclude_unset=True)
        requested = changes.pop("status", None)
        image_base64 = changes.pop("image_base64", None)
        if image_base64 and blob_store is not None:
            changes["image_url"] = await blob_store.upload_image(image_base64, f"booking-{booking_id}")

        async with atomic(db):
            booking = await self.lock_booking(db, booking_id)
            if requested is not None and requested != booking.status:
                if booking.status != BookingStatus.PENDING:
                    raise InvalidStatusTransitionError(booking.status, requested)
                if requested == BookingStatus.CANCELLED:
                    await self.cancel_locked(db, booking, "Cancelled by update")
                else:
                    booking.status = requested
            for field, value in changes.items():
                setattr(booking, field, value)
        return await self.get_booking(db, booking_id)

    async def get_booking(self, db: AsyncSession, booking_id: int) -> Booking:
        result = await db.execute(
            select(Booking)
            .where(Booking.id == booking_id)
            .options(selectinload(Booking.seats))
            .execution_options(populate_existing=True)
        )
        booking = result.scalar_one_or_none()
        if booking is None:
            raise NotFoundError("Booking", booking_id)
        return booking

    async def get_user_bookings(self, db: AsyncSession, user_id: int) -> list[Booking]:
        await crud_user.get_user(db, user_id)
        result = await db.scalars(
            select(Booking)
            .where(Booking.user_id == user_id)
            .options(selectinload(Booking.seats))
            .order_by(Booking.booking_date.desc(), Booking.id.desc())
        )
        return list(result.all())

    async def list_bookings(self, db: AsyncSession, page: int = 1, limit: int = 10) -> dict:
        total = await db.scalar(select(func.count()).select_from(Booking))
        result = await db.scalars(
            select(Booking)
            .options(selectinload(Booking.seats))
            .order_by(Booking.booking_date.desc(), Booking.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return {
            "data": list(result.all()),
            "meta": {
                "total": total,
                "page": page,
                "limit": limit,
                "total_pages": math.ceil(total / limit) if total else 0,
            },
        }

    async def expire_stale_bookings(self, db: AsyncSession, now: Optional[datetime] = None,
                                    ttl_minutes: Optional[int] = None) -> int:
        """Cancel PENDING bookings older than the TTL, one transaction per booking."""
        now = now or datetime.now(timezone.utc)
        ttl_minutes = ttl_minutes if ttl_minutes is not None else settings.PENDING_BOOKING_TTL_MINUTES
        cutoff = now - timedelta(minutes=ttl_minutes)
        async with atomic(db):
            stale_ids = list((await db.scalars(
                select(Booking.id)
                .where(Booking.status == BookingStatus.PENDING)
                .where(Booking.created_at < cutoff)
                .order_by(Booking.id)
            )).all())

        expired = 0
        for booking_id in stale_ids:
            async with atomic(db):
                booking = await self.lock_booking(db, booking_id)
                # a callback may have settled it since the scan
                if booking.status == BookingStatus.PENDING:
                    await self.cancel_locked(db, booking, "Booking expired")
                    expired += 1
        if expired:
            logger.info(f"Expired {expired} stale bookings")
        return expired


crud_booking = CRUDBooking()
