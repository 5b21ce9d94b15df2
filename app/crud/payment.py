from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

from app.core.exceptions import NotFoundError
from app.crud.booking import crud_booking
from app.models.payment import Payment


class CRUDPayment:
    async def get_payment(self, db: AsyncSession, payment_id: int) -> Payment:
        result = await db.execute(select(Payment).where(Payment.id == payment_id))
        payment = result.scalar_one_or_none()
        if payment is None:
            raise NotFoundError("Payment", payment_id)
        return payment

    async def get_booking_payments(self, db: AsyncSession, booking_id: int) -> list[Payment]:
        """Newest attempt first."""
        await crud_booking.get_booking(db, booking_id)
        result = await db.scalars(
            select(Payment)
            .where(Payment.booking_id == booking_id)
            .order_by(Payment.created_at.desc(), Payment.id.desc())
        )
        return list(result.all())


crud_payment = CRUDPayment()
