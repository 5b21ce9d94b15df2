from datetime import datetime, timezone
from sqlalchemy import DateTime
from sqlalchemy.orm import Mapped, mapped_column


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

from .Movie import Movie
from .Theatre import Theatre
from .Seat import Seat, SeatType
from .Showtime import Showtime
from .user import User, UserRole
from .booking import Booking, BookingStatus, PaymentMethod
from .booking_seat import BookingSeat, BookingSeatStatus
from .payment import Payment, PaymentProvider, PaymentStatus
