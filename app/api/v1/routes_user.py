from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.crud.booking import crud_booking
from app.db.session import getDB_session
from app.schemas.booking import BookingResponse

router = APIRouter(
    prefix="/users"
)


@router.get("/{user_id}/bookings", response_model=list[BookingResponse])
async def get_user_bookings(user_id: int, db: AsyncSession = Depends(getDB_session)):
    return await crud_booking.get_user_bookings(db, user_id)
