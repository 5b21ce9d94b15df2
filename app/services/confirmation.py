from typing import Any, Optional
from urllib.parse import urlencode

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.sql import select

from app.core.exceptions import NotFoundError
from app.models.Showtime import Showtime
from app.models.booking import Booking
from app.models.booking_seat import BookingSeat
from app.services.reconciliation import ReconciliationOutcome


async def load_template_data(db: AsyncSession, booking_id: int) -> dict[str, Any]:
    """Everything the confirmation email and the result page show about a booking."""
    result = await db.execute(
        select(Booking)
        .where(Booking.id == booking_id)
        .options(
            selectinload(Booking.seats).selectinload(BookingSeat.seat),
            selectinload(Booking.showtime).selectinload(Showtime.movie),
            selectinload(Booking.showtime).selectinload(Showtime.theatre),
        )
        .execution_options(populate_existing=True)
    )
    booking = result.scalar_one_or_none()
    if booking is None:
        raise NotFoundError("Booking", booking_id)
    showtime = booking.showtime
    return {
        "booking_id": booking.id,
        "booking_code": booking.booking_code,
        "status": booking.status.value,
        "customer_name": " ".join(filter(None, [booking.first_name, booking.last_name])),
        "email": booking.email,
        "movie_title": showtime.movie.title,
        "theatre_name": showtime.theatre.name,
        "date": showtime.date.isoformat(),
        "time": showtime.time,
        "seats": [booking_seat.seat.label for booking_seat in booking.seats],
        "total_price": str(booking.total_price),
    }


def build_result_redirect(frontend_base_url: str, outcome: ReconciliationOutcome,
                          template_data: Optional[dict[str, Any]] = None) -> str:
    params: dict[str, Any] = {"status": "success" if outcome.paid else "failed",
                              "reason": outcome.status.value}
    if outcome.callback is not None:
        params["orderId"] = outcome.callback.order_id
    if template_data:
        params.update({
            "bookingCode": template_data["booking_code"],
            "movie": template_data["movie_title"],
            "theatre": template_data["theatre_name"],
            "date": template_data["date"],
            "time": template_data["time"],
            "seats": ",".join(template_data["seats"]),
            "totalPrice": template_data["total_price"],
        })
    return f"{frontend_base_url.rstrip('/')}/booking/result?{urlencode(params)}"
