from typing import Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.sql import select

from app.core.exceptions import NotFoundError, ValidationError
from app.models.Seat import Seat
from app.models.Showtime import Showtime
from app.models.booking_seat import BookingSeat, BookingSeatStatus


class CRUDShowtime:
    """Seat inventory for a showtime. Reads only; bookings own every write."""

    async def get_showtime(self, db: AsyncSession, showtime_id: int, with_details: bool = False) -> Showtime:
        stmt = select(Showtime).where(Showtime.id == showtime_id).execution_options(populate_existing=True)
        if with_details:
            stmt = stmt.options(selectinload(Showtime.movie), selectinload(Showtime.theatre))
        showtime = (await db.execute(stmt)).scalar_one_or_none()
        if showtime is None:
            raise NotFoundError("Showtime", showtime_id)
        return showtime

    async def get_seats_for_showtime(self, db: AsyncSession, showtime: Showtime, seat_ids: Sequence[int]) -> list[Seat]:
        """Resolve seat ids inside the showtime's theatre; unknown or foreign ids are rejected together."""
        result = await db.scalars(
            select(Seat)
            .where(Seat.theatre_id == showtime.theatre_id)
            .where(Seat.id.in_(seat_ids))
            .order_by(Seat.id)
            .execution_options(populate_existing=True)
        )
        seats = list(result.all())
        missing = sorted(set(seat_ids) - {seat.id for seat in seats})
        if missing:
            raise ValidationError(
                f"Seats {missing} do not exist in theatre {showtime.theatre_id}",
                details={"seat_ids": missing, "showtime_id": showtime.id})
        return seats

    async def find_booked_seat_ids(self, db: AsyncSession, showtime_id: int, seat_ids: Sequence[int] | None = None) -> list[int]:
        stmt = (select(BookingSeat.seat_id)
                .where(BookingSeat.showtime_id == showtime_id)
                .where(BookingSeat.status == BookingSeatStatus.BOOKED))
        if seat_ids is not None:
            stmt = stmt.where(BookingSeat.seat_id.in_(seat_ids))
        result = await db.scalars(stmt)
        return sorted(result.all())

    async def list_available_seats(self, db: AsyncSession, showtime_id: int) -> list[Seat]:
        showtime = await self.get_showtime(db, showtime_id)
        booked = (select(BookingSeat.seat_id)
                  .where(BookingSeat.showtime_id == showtime_id)
                  .where(BookingSeat.status == BookingSeatStatus.BOOKED))
        result = await db.scalars(
            select(Seat)
            .where(Seat.theatre_id == showtime.theatre_id)
            .where(Seat.id.not_in(booked))
            .order_by(Seat.row_label, Seat.seat_number)
            .execution_options(populate_existing=True)
        )
        return list(result.all())


crud_showtime = CRUDShowtime()
