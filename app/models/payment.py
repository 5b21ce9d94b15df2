from enum import Enum
from typing import Optional
from sqlalchemy import BigInteger, Enum as SAEnum, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.base import Base, BigIntPK
from app.models import TimestampMixin


class PaymentProvider(str, Enum):
    MOMO = "MOMO"
    VNPAY = "VNPAY"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self is not PaymentStatus.PENDING


class Payment(Base, TimestampMixin):
    """
    One attempt to settle a booking through one provider.
    order_id is the booking code, the only identifier the provider sees.
    """
    __table_args__ = (
        Index(
            "uix_payment_one_pending_per_booking",
            "booking_id",
            unique=True,
            postgresql_where=text("status = 'PENDING'"),
            sqlite_where=text("status = 'PENDING'"),
        ),
    )
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, index=True)
    booking_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("booking.id"), nullable=False, index=True)
    order_id: Mapped[str] = mapped_column(String(40), nullable=False, index=True)
    request_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    provider: Mapped[PaymentProvider] = mapped_column(SAEnum(PaymentProvider), nullable=False)
    status: Mapped[PaymentStatus] = mapped_column(
        SAEnum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    pay_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    transaction_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    result_code: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    message: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    signature: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    booking: Mapped["Booking"] = relationship(back_populates="payments")
