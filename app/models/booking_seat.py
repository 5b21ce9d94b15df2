from enum import Enum
from app.db.base import Base, BigIntPK
from app.models import TimestampMixin
from sqlalchemy import BigInteger, Enum as SAEnum, ForeignKey, Index, text
from sqlalchemy.orm import Mapped, mapped_column, relationship


class BookingSeatStatus(str, Enum):
    BOOKED = "BOOKED"
    CANCELLED = "CANCELLED"


ACTIVE_SEAT_INDEX = "uix_bookingseat_active_seat"


class BookingSeat(Base, TimestampMixin):
    # the storage engine, not the application, guarantees one active holder
    # per (showtime, seat); cancelled rows drop out of the index
    __table_args__ = (
        Index(
            ACTIVE_SEAT_INDEX,
            "showtime_id",
            "seat_id",
            unique=True,
            postgresql_where=text("status = 'BOOKED'"),
            sqlite_where=text("status = 'BOOKED'"),
        ),
    )
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    booking_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("booking.id"), nullable=False, index=True)
    showtime_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("showtime.id"), nullable=False)
    seat_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("seat.id"), nullable=False)
    status: Mapped[BookingSeatStatus] = mapped_column(
        SAEnum(BookingSeatStatus), nullable=False, default=BookingSeatStatus.BOOKED)
    booking: Mapped["Booking"] = relationship(back_populates="seats")
    seat: Mapped["Seat"] = relationship()
