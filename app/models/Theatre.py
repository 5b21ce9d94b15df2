from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.base import Base, BigIntPK
from app.models import TimestampMixin


class Theatre(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str] = mapped_column(String(255), nullable=False)
    seats: Mapped[list["Seat"]] = relationship(back_populates="theatre", cascade="all, delete-orphan")
    showtimes: Mapped[list["Showtime"]] = relationship(back_populates="theatre")
