import logging
from typing import AsyncGenerator
from redis.asyncio import Redis
from redis.asyncio.connection import ConnectionPool
from app.core.config import settings

logger = logging.getLogger(__name__)

# only booking idempotency lives here; seat state is never cached
IDEMPOTENCY_CONNECT_TIMEOUT_SECONDS = 2


def create_redis(url: str, connect_timeout: float = IDEMPOTENCY_CONNECT_TIMEOUT_SECONDS) -> Redis:
    """Client for the idempotency cache. Fails fast so a dead cache never stalls a booking."""
    pool = ConnectionPool.from_url(url, socket_connect_timeout=connect_timeout, socket_timeout=connect_timeout)
    return Redis(connection_pool=pool)


idempotency_cache = create_redis(settings.REDIS_URL)


async def get_redis() -> AsyncGenerator[Redis, None]:
    yield idempotency_cache


async def close_redis():
    await idempotency_cache.aclose()
    await idempotency_cache.connection_pool.disconnect()
    logger.info("Closed idempotency cache connections")
