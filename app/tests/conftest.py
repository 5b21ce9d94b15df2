import json
import os
from datetime import date, datetime
from decimal import Decimal

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

import app.models  # noqa: F401
from app.core.config import settings
from app.db.base import Base
from app.db.session import getDB_session
from app.redis import create_redis
from app.models import Movie, Seat, SeatType, Showtime, Theatre, User, UserRole
from app.models.payment import PaymentProvider
from app.schemas.booking import BookingCreate
from app.services.gateways import MomoConfig, MomoGateway, VNPayConfig, VNPayGateway, get_gateways
from app.services.gateways.vnpay import VNPAY_TIMEZONE
from app.services.notification import NotificationService, get_notification_service


MOMO_SECRET = "momo-test-secret"
VNPAY_SECRET = "VNPAYTESTSECRET"
MOMO_PAY_URL = "https://test-payment.momo.vn/v2/gateway/pay?t=abc"


def is_postgres(url: str) -> bool:
    return url.startswith("postgresql")


@pytest.fixture
def test_db_url(tmp_path):
    return os.getenv("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'cinema_test.db'}"


@pytest.fixture
async def db_engine(test_db_url):
    """Create a database engine for the tests.

    Function-scoped to ensure it's created in the same event loop as the test.
    """
    engine = create_async_engine(test_db_url, echo=False, future=True)

    # create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)  # Clean slate
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Cleanup: drop tables and dispose engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def db_session_factory(db_engine):
    """Factory to create multiple sessions for concurrent tests."""
    return async_sessionmaker(
        bind=db_engine,
        expire_on_commit=False,
        autoflush=False,
        autocommit=False
    )


@pytest.fixture
async def db_session(db_session_factory):
    async with db_session_factory() as session:
        yield session


@pytest.fixture
async def seeded_test_data(db_session_factory):
    """
    One theatre with two cheap seats (100, 120) and two seats above the
    gateway minimum, a seat in another theatre, a weekday matinee, a weekday
    evening show and a weekend show, plus a regular and a student user.
    """
    async with db_session_factory() as session:
        theatre = Theatre(name="Test Theatre", city="Test City", address="Test Address")
        other_theatre = Theatre(name="Other Theatre", city="Test City", address="Other Address")
        session.add_all([theatre, other_theatre])
        await session.flush()

        seats = [
            Seat(theatre_id=theatre.id, row_label="A", seat_number=1, seat_type=SeatType.REGULAR, price=Decimal("100")),
            Seat(theatre_id=theatre.id, row_label="A", seat_number=2, seat_type=SeatType.REGULAR, price=Decimal("120")),
            Seat(theatre_id=theatre.id, row_label="B", seat_number=1, seat_type=SeatType.PREMIUM, price=Decimal("50000")),
            Seat(theatre_id=theatre.id, row_label="B", seat_number=2, seat_type=SeatType.PREMIUM, price=Decimal("50000")),
        ]
        foreign_seat = Seat(theatre_id=other_theatre.id, row_label="C", seat_number=1,
                            seat_type=SeatType.REGULAR, price=Decimal("100"))
        movie = Movie(title="Test Movie", synopsis="A test movie for testing", duration_mins=120)
        session.add_all([*seats, foreign_seat, movie])
        await session.flush()

        # 2024-01-10 is a Wednesday, 2024-01-13 a Saturday
        matinee = Showtime(movie_id=movie.id, theatre_id=theatre.id, date=date(2024, 1, 10),
                           time="14:00", price=Decimal("100"))
        evening = Showtime(movie_id=movie.id, theatre_id=theatre.id, date=date(2024, 1, 10),
                           time="19:30", price=Decimal("100"))
        weekend = Showtime(movie_id=movie.id, theatre_id=theatre.id, date=date(2024, 1, 13),
                           time="10:00", price=Decimal("100"), surcharge=Decimal("5"))
        user = User(email="user@example.com", first_name="Test", last_name="User",
                    phone_number="0900000001", role=UserRole.USER)
        student = User(email="student@example.com", first_name="Study", last_name="Hard",
                       phone_number="0900000002", role=UserRole.STUDENT)
        session.add_all([matinee, evening, weekend, user, student])
        await session.commit()

        yield {
            "theatre_id": theatre.id,
            "showtime_id": matinee.id,
            "evening_showtime_id": evening.id,
            "weekend_showtime_id": weekend.id,
            "seat_ids": [seats[0].id, seats[1].id],
            "premium_seat_ids": [seats[2].id, seats[3].id],
            "all_seat_ids": [seat.id for seat in seats],
            "foreign_seat_id": foreign_seat.id,
            "user_id": user.id,
            "student_id": student.id,
        }


@pytest.fixture
def momo_requests():
    """Bodies the fake wallet provider received."""
    return []


@pytest.fixture
def momo_gateway(momo_requests):
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        momo_requests.append(body)
        return httpx.Response(200, json={
            "partnerCode": body["partnerCode"],
            "orderId": body["orderId"],
            "requestId": body["requestId"],
            "amount": body["amount"],
            "resultCode": 0,
            "message": "Successful.",
            "payUrl": MOMO_PAY_URL,
            "qrCodeUrl": "momo://qr/abc",
            "deeplink": "momo://app?action=pay",
        })

    config = MomoConfig(partner_code="MOMOTEST", access_key="test-access-key", secret_key=MOMO_SECRET,
                        endpoint="https://momo.test/v2/gateway/api/create")
    return MomoGateway(config, transport=httpx.MockTransport(handler))


@pytest.fixture
def vnpay_gateway():
    config = VNPayConfig(tmn_code="TMNTEST1", hash_secret=VNPAY_SECRET,
                         pay_url="https://sandbox.vnpayment.vn/paymentv2/vpcpay.html")
    return VNPayGateway(config, clock=lambda: datetime(2024, 1, 10, 9, 0, 0, tzinfo=VNPAY_TIMEZONE))


@pytest.fixture
def gateways(momo_gateway, vnpay_gateway):
    return {PaymentProvider.MOMO: momo_gateway, PaymentProvider.VNPAY: vnpay_gateway}


@pytest.fixture
def momo_callback(momo_gateway):
    """Build a signed wallet-provider callback for a payment."""
    def build(payment, result_code: int = 0, amount: int | None = None, message: str = "Successful.") -> dict:
        payload = {
            "partnerCode": momo_gateway.config.partner_code,
            "orderId": payment.order_id,
            "requestId": payment.request_id,
            "amount": payment.amount if amount is None else amount,
            "orderInfo": f"Thanh toan ve xem phim {payment.order_id}",
            "orderType": "momo_wallet",
            "transId": 4088878653,
            "resultCode": result_code,
            "message": message,
            "payType": "qr",
            "responseTime": 1704852000000,
            "extraData": str(payment.booking_id),
        }
        payload["signature"] = momo_gateway.sign_callback(payload)
        return payload
    return build


@pytest.fixture
def vnpay_callback(vnpay_gateway):
    """Build a signed hosted-page provider notification for a payment."""
    def build(payment, response_code: str = "00", amount: int | None = None) -> dict:
        params = {
            "vnp_Amount": str((payment.amount if amount is None else amount) * 100),
            "vnp_BankCode": "NCB",
            "vnp_CardType": "ATM",
            "vnp_OrderInfo": f"Thanh toan ve xem phim {payment.order_id}",
            "vnp_PayDate": "20240110091500",
            "vnp_ResponseCode": response_code,
            "vnp_TmnCode": vnpay_gateway.config.tmn_code,
            "vnp_TransactionNo": "14226112",
            "vnp_TransactionStatus": response_code,
            "vnp_TxnRef": payment.order_id,
        }
        params["vnp_SecureHash"] = vnpay_gateway.sign(params)
        return params
    return build


class RecordingNotificationService(NotificationService):
    """Keeps every message so tests can assert on what was sent."""

    def __init__(self):
        self.sent: list[dict] = []

    async def send_email(self, to: str, subject: str, body: str) -> bool:
        self.sent.append({"to": to, "subject": subject, "body": body})
        return await super().send_email(to, subject, body)


@pytest.fixture
def notifications():
    return RecordingNotificationService()


@pytest.fixture
async def client(db_session_factory, gateways, notifications):
    from app.app import app

    async def override_db():
        async with db_session_factory() as session:
            yield session

    app.dependency_overrides[getDB_session] = override_db
    app.dependency_overrides[get_gateways] = lambda: gateways
    app.dependency_overrides[get_notification_service] = lambda: notifications
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
async def redis_client():
    """Create a Redis client for the tests; skips when no Redis answers."""
    redis = create_redis(settings.REDIS_URL)
    try:
        await redis.ping()
    except RedisError:
        await redis.aclose()
        await redis.connection_pool.disconnect()
        pytest.skip("Redis is not available")
    try:
        keys = await redis.keys("idempotency:test-*")
        if keys:
            await redis.delete(*keys)
        yield redis
    finally:
        keys = await redis.keys("idempotency:test-*")
        if keys:
            await redis.delete(*keys)
        await redis.aclose()
        await redis.connection_pool.disconnect()


@pytest.fixture
def booking_request(seeded_test_data):
    """Build a BookingCreate against the seeded catalog."""
    def build(seat_ids=None, user_id=None, showtime_id=None, **extra) -> BookingCreate:
        return BookingCreate(
            user_id=user_id or seeded_test_data["user_id"],
            showtime_id=showtime_id or seeded_test_data["showtime_id"],
            seat_ids=seat_ids or seeded_test_data["seat_ids"],
            **extra,
        )
    return build
