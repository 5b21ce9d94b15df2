from typing import Optional
from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.base import Base, BigIntPK
from app.models import TimestampMixin


class Movie(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    synopsis: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    duration_mins: Mapped[int] = mapped_column(Integer, nullable=False)
    poster_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    showtimes: Mapped[list["Showtime"]] = relationship(back_populates="movie")
