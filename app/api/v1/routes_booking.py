from enum import Enum
from fastapi import APIRouter, Depends, Query, Request
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.idempotency import check_idempotency, store_idempotent_response
from app.crud.booking import BookingResult, crud_booking
from app.db.session import getDB_session
from app.models.payment import PaymentProvider
from app.redis import get_redis
from app.schemas.booking import (
    BookingCreate,
    BookingDetailResponse,
    BookingPage,
    BookingResponse,
    BookingUpdate,
    GatewayBookingResponse,
)
from app.schemas.payment import PaymentRedirectResponse, PaymentResponse
from app.schemas.seat import SeatResponse
from app.schemas.showtime import ShowtimeResponse
from app.services.blob_store import BlobStore, get_blob_store
from app.services.gateways import PaymentGateway, get_gateways

router = APIRouter(
    prefix="/bookings"
)


class GatewayName(str, Enum):
    momo = "momo"
    vnpay = "vnpay"


def to_detail_response(result: BookingResult) -> BookingDetailResponse:
    return BookingDetailResponse(
        **BookingResponse.model_validate(result.booking).model_dump(),
        seat_details=[SeatResponse.model_validate(seat) for seat in result.seats],
        showtime=ShowtimeResponse.model_validate(result.showtime),
    )


@router.post("", response_model=BookingDetailResponse, status_code=201)
async def create_booking(
        data: BookingCreate,
        request: Request,
        db: AsyncSession = Depends(getDB_session),
        redis: Redis = Depends(get_redis),
        blob_store: BlobStore = Depends(get_blob_store)):
    idem_key, cached, is_repeat = await check_idempotency(request, redis)
    if is_repeat:
        return cached
    result = await crud_booking.create_booking(db, data, blob_store=blob_store)
    response = to_detail_response(result)
    await store_idempotent_response(redis, idem_key, response.model_dump(mode="json"))
    return response


@router.post("/{provider}", response_model=GatewayBookingResponse, status_code=201)
async def create_booking_with_payment(
        provider: GatewayName,
        data: BookingCreate,
        request: Request,
        db: AsyncSession = Depends(getDB_session),
        gateways: dict[PaymentProvider, PaymentGateway] = Depends(get_gateways),
        blob_store: BlobStore = Depends(get_blob_store)):
    gateway = gateways[PaymentProvider(provider.value.upper())]
    client_ip = request.client.host if request.client else "127.0.0.1"
    outcome = await crud_booking.create_booking_with_gateway_payment(
        db, gateway, data, settings.PUBLIC_BASE_URL, client_ip=client_ip, blob_store=blob_store)
    return GatewayBookingResponse(
        booking=to_detail_response(outcome.result),
        payment=PaymentResponse.model_validate(outcome.payment),
        redirect=PaymentRedirectResponse.model_validate(outcome.redirect),
    )


@router.get("", response_model=BookingPage)
async def list_bookings(
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
        db: AsyncSession = Depends(getDB_session)):
    return await crud_booking.list_bookings(db, page, limit)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(booking_id: int, db: AsyncSession = Depends(getDB_session)):
    return await crud_booking.get_booking(db, booking_id)


@router.patch("/{booking_id}", response_model=BookingResponse)
async def update_booking(
        booking_id: int,
        data: BookingUpdate,
        db: AsyncSession = Depends(getDB_session),
        blob_store: BlobStore = Depends(get_blob_store)):
    return await crud_booking.update_booking(db, booking_id, data, blob_store=blob_store)


@router.delete("/{booking_id}", response_model=BookingResponse)
async def cancel_booking(booking_id: int, db: AsyncSession = Depends(getDB_session)):
    return await crud_booking.cancel_booking(db, booking_id)
