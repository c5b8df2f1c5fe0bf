import logging
from typing import Optional
from redis.asyncio import Redis
from redis.exceptions import RedisError
from po_confirmation.core.config import settings

logger = logging.getLogger(__name__)

redis: Optional[Redis] = None

async def init_redis() -> Redis:
    global redis
    client = Redis.from_url(settings.REDIS_URL, decode_responses=True, socket_connect_timeout=2)
    try:
        await client.ping()
    except (RedisError, OSError) as e:
        logger.error(f"Failed to connect to Redis: {e}")
        await client.aclose()
        raise
    redis = client
    logger.info("Connected to Redis")
    return redis

async def close_redis():
    global redis
    if redis:
        await redis.aclose()
        redis = None

def get_redis() -> Redis:
    if redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return redis

def redis_available() -> bool:
    return redis is not None
