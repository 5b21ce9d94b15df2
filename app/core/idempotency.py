import json
import logging
from typing import Any, Optional
from redis.asyncio import Redis
from redis.exceptions import RedisError
from fastapi import Request

from app.core.config import settings


logger = logging.getLogger(__name__)

IDEMPOTENCY_HEADER = "X-Idempotency-Key"


def _redis_key(idem_key: str) -> str:
    return f"idempotency:{idem_key}"


async def check_idempotency(request: Request, redis: Redis) -> tuple[Optional[str], Any, bool]:
    """
    Returns (key, cached response, is_repeat). Requests without the header
    are never deduplicated; an unreachable Redis degrades to the same.
    """
    idem_key = request.headers.get(IDEMPOTENCY_HEADER)
    if not idem_key:
        return None, None, False
    try:
        cached = await redis.get(_redis_key(idem_key))
    except RedisError as e:
        logger.warning(f"Idempotency lookup for {idem_key} failed: {e}")
        return idem_key, None, False
    if cached:
        return idem_key, json.loads(cached), True
    return idem_key, None, False


async def store_idempotent_response(redis: Redis, idem_key: Optional[str], response: Any) -> None:
    if not idem_key:
        return
    try:
        await redis.set(_redis_key(idem_key), json.dumps(response), ex=settings.IDEMPOTENCY_TTL_SECONDS)
    except RedisError as e:
        logger.warning(f"Could not cache response for idempotency key {idem_key}: {e}")
