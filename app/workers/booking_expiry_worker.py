import asyncio
import logging

from app.core.config import settings
from app.crud.booking import crud_booking
from app.db.session import async_session


logger = logging.getLogger(__name__)


class BookingExpiryWorker:
    """Releases seats held by PENDING bookings nobody paid for."""

    def __init__(self, interval_seconds: float = settings.EXPIRY_SWEEP_INTERVAL_SECONDS,
                 session_factory=async_session):
        self.interval_seconds = interval_seconds
        self.session_factory = session_factory

    async def run_once(self) -> int:
        async with self.session_factory() as session:
            return await crud_booking.expire_stale_bookings(session)

    async def run(self):
        while True:
            try:
                await self.run_once()
            except Exception as e:
                # keep sweeping through transient outages
                logger.error(f"Booking expiry sweep failed: {e!r}", exc_info=True)
            await asyncio.sleep(self.interval_seconds)


booking_expiry_worker = BookingExpiryWorker()
