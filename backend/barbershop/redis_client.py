import redis.asyncio as aioredis

from .config import settings

redis_client = aioredis.from_url(settings.redis_url, decode_responses=True)
