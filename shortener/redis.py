import logging
import os
import redis.asyncio as redis
from .config import settings
from typing import Optional

logger = logging.getLogger(__name__)

class RedisClient:
    def __init__(self, url: Optional[str] = None):
        self.url = url
        self.client: Optional[redis.Redis] = None
        self.owner = f"{os.getpid()}"

    async def connect(self):
        if not self.url:
            logger.info("REDIS_URL not set, sweep coordination disabled")
            return
        self.client = redis.from_url(
            self.url,
            encoding="utf-8",
            decode_responses=True
        )
        try:
            await self.client.ping()
        except redis.RedisError as e:
            logger.warning(f"Redis unavailable, sweep coordination disabled: {e}")
            await self.client.aclose()
            self.client = None

    async def close(self):
        if self.client:
            await self.client.aclose()
            self.client = None

    async def acquire_lock(self, key: str, ttl_seconds: int) -> bool:
        """Take a short-lived lock shared by every worker using this Redis.

        Without Redis (or on a Redis error) the lock counts as acquired.
        """
        if not self.client:
            return True
        try:
            return bool(await self.client.set(key, self.owner, nx=True, ex=ttl_seconds))
        except redis.RedisError as e:
            logger.warning(f"Redis lock {key} failed, proceeding without it: {e}")
            return True

redis_client = RedisClient(settings.REDIS_URL)
