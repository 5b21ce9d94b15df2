from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field

from app.models.booking import BookingStatus, PaymentMethod
from app.models.booking_seat import BookingSeatStatus
from app.schemas.payment import PaymentRedirectResponse, PaymentResponse
from app.schemas.seat import SeatResponse
from app.schemas.showtime import ShowtimeResponse


class ContactInfo(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None


class BookingCreate(ContactInfo):
    user_id: int = Field(gt=0)
    showtime_id: int = Field(gt=0)
    seat_ids: list[int]
    payment_method: Optional[PaymentMethod] = None
    promotion_id: Optional[int] = None
    image_base64: Optional[str] = None


class BookingUpdate(ContactInfo):
    status: Optional[BookingStatus] = None
    payment_method: Optional[PaymentMethod] = None
    promotion_id: Optional[int] = None
    image_base64: Optional[str] = None


class BookingSeatResponse(BaseModel):
    id: int
    seat_id: int
    showtime_id: int
    status: BookingSeatStatus

    class Config:
        from_attributes = True


class BookingResponse(ContactInfo):
    id: int
    booking_code: str
    user_id: int
    showtime_id: int
    status: BookingStatus
    total_price: Decimal
    booking_date: datetime
    payment_method: Optional[PaymentMethod] = None
    promotion_id: Optional[int] = None
    image_url: Optional[str] = None
    seats: list[BookingSeatResponse] = []

    class Config:
        from_attributes = True


class BookingDetailResponse(BookingResponse):
    seat_details: list[SeatResponse]
    showtime: ShowtimeResponse


class GatewayBookingResponse(BaseModel):
    booking: BookingDetailResponse
    payment: PaymentResponse
    redirect: PaymentRedirectResponse


class PageMeta(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


class BookingPage(BaseModel):
    data: list[BookingResponse]
    meta: PageMeta
