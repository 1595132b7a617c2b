import json
from uuid import UUID

from loguru import logger
from pydantic import TypeAdapter
from redis.asyncio import Redis

from app import settings
from app.schemas import BookingSlot

_slots_adapter = TypeAdapter(list[BookingSlot])


class SlotsCache:
    """
    Occupied-slot listings per resource, kept in Redis for a short TTL.
    Redis trouble never fails a request: reads miss, writes are skipped.
    """

    def __init__(self, redis: Redis | None = None, ttl: int = settings.SLOTS_TTL):
        self._redis = redis
        self.ttl = ttl

    @property
    def redis(self) -> Redis:
        if self._redis is None:
            self._redis = Redis.from_url(settings.REDIS_URL, decode_responses=True)
        return self._redis

    @staticmethod
    def key(resource_id: UUID) -> str:
        return f"slots:{resource_id}"

    async def get(self, resource_id: UUID) -> list[BookingSlot] | None:
        try:
            data = await self.redis.get(self.key(resource_id))
        except Exception:
            logger.opt(exception=True).warning(
                "Redis get failed — skipping slots cache for resource_id={}",
                resource_id,
            )
            return None
        if not data:
            return None
        return _slots_adapter.validate_python(json.loads(data))

    async def set(self, resource_id: UUID, slots: list[BookingSlot]) -> None:
        payload = json.dumps([s.model_dump(mode="json") for s in slots])
        try:
            await self.redis.setex(self.key(resource_id), self.ttl, payload)
        except Exception:
            logger.opt(exception=True).warning(
                "Redis set failed — skipping slots cache for resource_id={}",
                resource_id,
            )

    async def invalidate(self, resource_id: UUID) -> None:
        try:
            await self.redis.delete(self.key(resource_id))
        except Exception:
            logger.opt(exception=True).warning(
                "Redis invalidate failed for slots cache resource_id={}", resource_id
            )


_slots_cache = SlotsCache()


def get_slots_cache() -> SlotsCache:
    return _slots_cache
