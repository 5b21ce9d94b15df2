import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator
from app.core.config import get_settings
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.db.base import Base


settings = get_settings()
logger = logging.getLogger(__name__)

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.SQL_ECHO,
    future=True,
    pool_pre_ping=True
)

async_session = async_sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False
)


async def getDB_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides an async DB session
    and ensures it's closed after the request.
    """
    async with async_session() as session:
        yield session


@asynccontextmanager
async def atomic(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    One unit of work: commits on exit, rolls back on any exception.
    A read-only transaction left open by autobegin is closed first so
    every unit starts from the latest committed state.
    """
    if db.in_transaction():
        await db.commit()
    async with db.begin():
        yield db


async def init_db() -> None:
    """
    Create all tables based on models (development only).
    Schema migrations are handled outside this service.
    """
    import app.models  # noqa: F401  registers every mapper on Base.metadata

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        logger.info("Created all tables")
