import logging
from redis.asyncio import Redis
from po_confirmation.core.config import settings

logger = logging.getLogger(__name__)


class SubmissionLock:
    """Cross-process "submit in flight" flag, one Redis key per order."""

    def __init__(self, redis: Redis, ttl: int | None = None):
        self.redis = redis
        self.ttl = ttl or settings.SUBMISSION_LOCK_TTL

    @staticmethod
    def key_for(order_id: int) -> str:
        return f"lock:po-submit:{order_id}"

    async def acquire(self, order_id: int) -> bool:
        acquired = await self.redis.set(self.key_for(order_id), "1", nx=True, ex=self.ttl)
        return bool(acquired)

    async def release(self, order_id: int) -> None:
        await self.redis.delete(self.key_for(order_id))
