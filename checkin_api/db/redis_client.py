import redis.asyncio as redis
from typing import Optional


class RedisClient:
    def __init__(self, url: str):
        self.url = url
        self.redis: Optional[redis.Redis] = None

    async def connect(self):
        self.redis = redis.from_url(self.url, encoding="utf-8", decode_responses=True)

    async def close(self):
        if self.redis:
            await self.redis.aclose()
            self.redis = None

    async def incr(self, key: str) -> int:
        return await self.redis.incr(key)

    async def expire(self, key: str, seconds: int):
        await self.redis.expire(key, seconds)
