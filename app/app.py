import asyncio
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from app.api.v1 import routes_booking, routes_health, routes_payment, routes_showtime, routes_user
from app.core.config import settings
from app.core.exceptions import BookingError
from app.db import session
from app.redis import close_redis
from app.workers.booking_expiry_worker import booking_expiry_worker
from fastapi.middleware.cors import CORSMiddleware


logging.basicConfig(
    level=logging.DEBUG if settings.ENV == "development" else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if (settings.ENV == 'development'):
        await session.init_db()
    expiry_task = asyncio.create_task(booking_expiry_worker.run())
    try:
        yield
    finally:
        expiry_task.cancel()
        try:
            await expiry_task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error(f"Booking expiry worker ended with {e!r}")
        await close_redis()
        await session.engine.dispose()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Movie Ticketing API",
        version="0.1.0",
        description="Seat booking and payment reconciliation for movie tickets",
        lifespan=lifespan

    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.FRONTEND_BASE_URL],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(BookingError)
    async def booking_error_handler(request: Request, ex: BookingError):
        if ex.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {ex.message}\n{ex.stack_trace or ''}")
        else:
            logger.info(f"{request.method} {request.url.path} rejected: {ex.message}")
        return JSONResponse(status_code=ex.status_code, content={"error": ex.message, "details": ex.details})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, ex: RequestValidationError):
        errors = [{"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]} for error in ex.errors()]
        logger.info(f"{request.method} {request.url.path} rejected: {len(errors)} invalid fields")
        return JSONResponse(status_code=400, content={"error": "Invalid request", "details": {"errors": errors}})

    for router in (routes_health.router, routes_showtime.router, routes_booking.router,
                   routes_user.router, routes_payment.router, routes_payment.payments_router):
        app.include_router(
            router,
            prefix=settings.API_V1_PREFIX
        )

    @app.get("/")
    async def root():
        return {"message": "Movie ticketing backend is running"}
    return app


app = create_app()
