from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import APIRouter, Depends
from app.crud.showtime import crud_showtime
from app.db.session import getDB_session
from app.schemas.showtime import AvailableSeatsResponse


router = APIRouter(
    prefix="/showtimes"
)


@router.get("/{showtime_id}/available-seats", response_model=AvailableSeatsResponse)
async def get_available_seats(showtime_id: int, db: AsyncSession = Depends(getDB_session)):
    seats = await crud_showtime.list_available_seats(db, showtime_id)
    return {"showtime_id": showtime_id, "seats": seats}
