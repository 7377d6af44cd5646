# backend/barbershop/services/slots/redis_store.py
"""
Redis-backed availability cache.

Key format: avail:{cache key}   (see cache.py for cache key families)
Value: JSON-encoded bool or list of "HH:MM" strings.
Expiry: SET ... PX ttl_ms, so Redis drops entries on its own.

Shares entries between processes; same semantics as the memory cache.
"""

import json

from redis.asyncio import Redis

from .config import BookingConfig, get_booking_config


class RedisAvailabilityCache:
    """Redis storage wrapper for availability results."""

    KEY_PREFIX = "avail"

    def __init__(self, redis: Redis, config: BookingConfig | None = None):
        self.redis = redis
        self.config = config or get_booking_config()

    def _key(self, key: str) -> str:
        return f"{self.KEY_PREFIX}:{key}"

    @staticmethod
    def _decode(raw):
        return raw.decode() if isinstance(raw, bytes) else raw

    # ── Read ─────────────────────────────────────────────────────────────

    async def get(self, key: str):
        """Cached value, or None on miss."""
        raw = await self.redis.get(self._key(key))
        if raw is None:
            return None

        value = json.loads(self._decode(raw))
        if isinstance(value, list):
            return tuple(value)
        return value

    # ── Write ────────────────────────────────────────────────────────────

    async def put(self, key: str, value) -> None:
        if isinstance(value, tuple):
            value = list(value)
        await self.redis.set(
            self._key(key),
            json.dumps(value),
            px=self.config.cache_ttl_ms,
        )

    # ── Delete ───────────────────────────────────────────────────────────

    async def invalidate(self, key: str) -> bool:
        return bool(await self.redis.delete(self._key(key)))

    async def invalidate_matching(self, pattern: str) -> int:
        """Delete every key matching a glob pattern (relative to the prefix)."""
        keys = [
            self._decode(k)
            async for k in self.redis.scan_iter(match=self._key(pattern), count=100)
        ]
        if not keys:
            return 0
        return await self.redis.delete(*keys)

    async def invalidate_all(self) -> int:
        return await self.invalidate_matching("*")
