import datetime as dt
from decimal import Decimal
from typing import Optional
from sqlalchemy import BigInteger, Date, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.base import Base, BigIntPK
from app.models import TimestampMixin


class Showtime(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, index=True)
    movie_id: Mapped[int] = mapped_column(BigInteger, ForeignKey(
        "movie.id", ondelete="CASCADE"), nullable=False)
    theatre_id: Mapped[int] = mapped_column(BigInteger, ForeignKey(
        "theatre.id", ondelete="CASCADE"), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    # "HH:MM", compared lexically against the evening threshold
    time: Mapped[str] = mapped_column(String(5), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    surcharge: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    movie: Mapped["Movie"] = relationship(back_populates="showtimes")
    theatre: Mapped["Theatre"] = relationship(back_populates="showtimes")
