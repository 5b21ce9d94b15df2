from decimal import Decimal
from pydantic import BaseModel

from app.models.Seat import SeatType


class SeatBase(BaseModel):
    seat_number: int
    row_label: str
    seat_type: SeatType
    price: Decimal


class SeatResponse(SeatBase):
    id: int
    theatre_id: int

    class Config:
        from_attributes = True
