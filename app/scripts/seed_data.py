import asyncio
import logging
from datetime import date, timedelta
from decimal import Decimal

from app.db.session import async_session as AsyncSessionLocal, init_db
from app.models import (
    Theatre,
    Seat,
    SeatType,
    Movie,
    Showtime,
    User,
    UserRole,
)


logger = logging.getLogger(__name__)

SEAT_PRICES = {
    SeatType.RECLINER: Decimal("150000"),
    SeatType.PREMIUM: Decimal("110000"),
    SeatType.REGULAR: Decimal("80000"),
}


async def seed():
    async with AsyncSessionLocal() as session:

        # ------------------------------------------------------------------------------------
        # 1. Create Theatre
        # ------------------------------------------------------------------------------------
        theatre = Theatre(
            name="CGV Vincom Dong Khoi",
            city="Ho Chi Minh City",
            address="72 Le Thanh Ton, District 1",
        )
        session.add(theatre)
        await session.flush()  # get theatre.id

        # ------------------------------------------------------------------------------------
        # 2. Create Seats (5 rows x 10 seats)
        # ------------------------------------------------------------------------------------
        seats = []
        for row in ["A", "B", "C", "D", "E"]:
            for num in range(1, 11):
                seat_type = (
                    SeatType.RECLINER if row == "A" else
                    SeatType.PREMIUM if row in ["B", "C"] else
                    SeatType.REGULAR
                )
                seats.append(
                    Seat(
                        theatre_id=theatre.id,
                        row_label=row,
                        seat_number=num,
                        seat_type=seat_type,
                        price=SEAT_PRICES[seat_type],
                    )
                )
        session.add_all(seats)

        # ------------------------------------------------------------------------------------
        # 3. Create Movies
        # ------------------------------------------------------------------------------------
        movie1 = Movie(
            title="Interstellar",
            synopsis="A team travels through a wormhole in search of a new home for humanity.",
            duration_mins=169,
        )
        movie2 = Movie(
            title="Inception",
            synopsis="A thief who steals secrets through dream-sharing technology.",
            duration_mins=148,
        )
        session.add_all([movie1, movie2])
        await session.flush()

        # ------------------------------------------------------------------------------------
        # 4. Create Showtimes: a weekday matinee, a weekday evening and a weekend show
        # ------------------------------------------------------------------------------------
        today = date.today()
        next_monday = today + timedelta(days=(7 - today.weekday()) % 7 or 7)
        session.add_all([
            Showtime(movie_id=movie1.id, theatre_id=theatre.id, date=next_monday,
                     time="14:00", price=Decimal("80000")),
            Showtime(movie_id=movie1.id, theatre_id=theatre.id, date=next_monday,
                     time="19:30", price=Decimal("80000")),
            Showtime(movie_id=movie2.id, theatre_id=theatre.id, date=next_monday + timedelta(days=5),
                     time="10:00", price=Decimal("90000"), surcharge=Decimal("10000")),
        ])

        # ------------------------------------------------------------------------------------
        # 5. Create Users
        # ------------------------------------------------------------------------------------
        session.add_all([
            User(email="an.nguyen@example.com", first_name="An", last_name="Nguyen",
                 phone_number="0901234567", role=UserRole.USER),
            User(email="binh.tran@example.edu.vn", first_name="Binh", last_name="Tran",
                 phone_number="0912345678", role=UserRole.STUDENT),
        ])

        await session.commit()
        logger.info("Test data seeded successfully")


async def main():
    await init_db()
    await seed()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
