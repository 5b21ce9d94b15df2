from decimal import Decimal
from enum import Enum
from sqlalchemy import BigInteger, ForeignKey, Integer, Numeric, String, Enum as SAEnum, UniqueConstraint
from sqlalchemy.orm import mapped_column, Mapped, relationship
from app.db.base import Base, BigIntPK
from app.models import TimestampMixin


class SeatType(str, Enum):
    REGULAR = "REGULAR"
    PREMIUM = "PREMIUM"
    RECLINER = "RECLINER"


class Seat(Base, TimestampMixin):
    """A physical seat; the same row is reused by every showtime in its theatre."""
    __table_args__ = (
        UniqueConstraint("theatre_id", "row_label", "seat_number", name="uix_seat_theatre_position"),
    )
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, index=True)
    theatre_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("theatre.id", ondelete="CASCADE"), index=True, nullable=False)
    row_label: Mapped[str] = mapped_column(String(5), nullable=False)
    seat_number: Mapped[int] = mapped_column(Integer, nullable=False)
    seat_type: Mapped[SeatType] = mapped_column(SAEnum(
        SeatType, name="seat_type_enum"), nullable=False, default=SeatType.REGULAR)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    theatre: Mapped["Theatre"] = relationship(back_populates="seats")

    @property
    def label(self) -> str:
        return f"{self.row_label}{self.seat_number}"
