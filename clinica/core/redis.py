import json
import redis.asyncio as redis
from clinica.core.config import settings

class RedisClient:
    """Cache of live sessions issued by the auth provider, keyed by access token."""

    def __init__(self):
        self.redis = redis.from_url(settings.REDIS_URL, encoding="utf-8", decode_responses=True)

    async def set_session(self, token: str, value: dict, expire: int):
        await self.redis.set(f"session:{token}", json.dumps(value), ex=expire)

    async def get_session(self, token: str) -> dict | None:
        raw = await self.redis.get(f"session:{token}")
        return json.loads(raw) if raw else None

    async def delete_session(self, token: str):
        await self.redis.delete(f"session:{token}")

    async def ping(self) -> bool:
        return await self.redis.ping()

    async def close(self):
        await self.redis.close()

redis_client = RedisClient()
