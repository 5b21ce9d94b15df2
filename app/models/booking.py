from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from sqlalchemy import BigInteger, DateTime, Enum as SAEnum, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.base import Base, BigIntPK
from app.models import TimestampMixin


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    MOMO = "MOMO"
    VNPAY = "VNPAY"


class Booking(Base, TimestampMixin):
    __table_args__ = (
        UniqueConstraint("booking_code", name="uix_booking_booking_code"),
    )
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, index=True)
    booking_code: Mapped[str] = mapped_column(String(40), nullable=False)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    showtime_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("showtime.id"), nullable=False, index=True)
    status: Mapped[BookingStatus] = mapped_column(
        SAEnum(BookingStatus), nullable=False, default=BookingStatus.PENDING)
    # full precision; rounded to gateway units only when a payment is requested
    total_price: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)
    booking_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    first_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    payment_method: Mapped[Optional[PaymentMethod]] = mapped_column(
        SAEnum(PaymentMethod), nullable=True)
    promotion_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    seats: Mapped[List["BookingSeat"]] = relationship(
        back_populates="booking", cascade="all, delete-orphan", order_by="BookingSeat.seat_id")
    showtime: Mapped["Showtime"] = relationship()
    payments: Mapped[List["Payment"]] = relationship(
        back_populates="booking", order_by="Payment.created_at")

    @property
    def seat_ids(self) -> list[int]:
        return [booking_seat.seat_id for booking_seat in self.seats]
