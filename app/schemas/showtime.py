import datetime as dt
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel

from app.schemas.seat import SeatResponse


class ShowtimeBase(BaseModel):
    date: dt.date
    time: str
    price: Decimal
    surcharge: Optional[Decimal] = None


class ShowtimeResponse(ShowtimeBase):
    id: int
    movie_id: int
    theatre_id: int

    class Config:
        from_attributes = True  # orm_mode


class AvailableSeatsResponse(BaseModel):
    showtime_id: int
    seats: list[SeatResponse]
