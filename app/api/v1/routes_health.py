import logging
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import text

from app.db.session import getDB_session

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", summary="Basic health check endpoint", description="Reports whether the database answers.")
async def health_check(db: AsyncSession = Depends(getDB_session)):
    """
    Basic health check endpoint.
    Redis only backs idempotency, so it is not part of the check.
    """
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "unavailable", "database": "down"})
    return {"status": "ok", "database": "up"}
