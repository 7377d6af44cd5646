# backend/barbershop/services/slots/cache.py
"""
In-process availability cache with fixed TTL.

Key format:
    normal:{date}:{HH:MM}:{duration}      one-off slot check (bool)
    recurring:{weekday}:{HH:MM}:{duration} recurring slot check (bool)
    day:{date}:{duration}                  open slots of a day (tuple[str, ...])

Entries expire `ttl` after insertion, regardless of reads.
No sliding expiration, no LRU. Values are immutable.
"""

import fnmatch
import time
from datetime import date
from typing import Any, Callable, NamedTuple, Protocol


# ── Keys ─────────────────────────────────────────────────────────────────


def normal_key(target_date: date, start_time: str, duration: int) -> str:
    return f"normal:{target_date.isoformat()}:{start_time}:{duration}"


def recurring_key(weekday: int, start_time: str, duration: int) -> str:
    return f"recurring:{weekday}:{start_time}:{duration}"


def day_key(target_date: date, duration: int) -> str:
    return f"day:{target_date.isoformat()}:{duration}"


def date_patterns(target_date: date, weekday: int) -> list[str]:
    """Glob patterns covering every key an appointment on target_date can affect."""
    iso = target_date.isoformat()
    return [
        f"normal:{iso}:*",
        f"recurring:{weekday}:*",
        f"day:{iso}:*",
    ]


# ── Backends ─────────────────────────────────────────────────────────────


class CacheBackend(Protocol):
    async def get(self, key: str) -> Any | None: ...
    async def put(self, key: str, value: Any) -> None: ...
    async def invalidate(self, key: str) -> bool: ...
    async def invalidate_matching(self, pattern: str) -> int: ...
    async def invalidate_all(self) -> int: ...


class _Entry(NamedTuple):
    value: Any
    inserted_at: float


def _freeze(value: Any) -> Any:
    if isinstance(value, list):
        return tuple(value)
    return value


class AvailabilityCache:
    """
    Memory cache keyed by string, fixed TTL measured with an injectable clock.

    Every mutation is a single dict operation, so a reader never observes
    a half-written entry.
    """

    def __init__(
        self,
        ttl_seconds: float = 3.0,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = 10000,
    ):
        self.ttl = ttl_seconds
        self.clock = clock
        self.max_entries = max_entries
        self._entries: dict[str, _Entry] = {}

    def _is_expired(self, entry: _Entry, now: float) -> bool:
        return now - entry.inserted_at > self.ttl

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> Any | None:
        """Cached value, or None on miss/expiry."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        if self._is_expired(entry, self.clock()):
            self._entries.pop(key, None)
            return None

        return entry.value

    async def put(self, key: str, value: Any) -> None:
        self._entries[key] = _Entry(_freeze(value), self.clock())
        if len(self._entries) > self.max_entries:
            self.cleanup_expired()

    async def invalidate(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def invalidate_matching(self, pattern: str) -> int:
        keys = [k for k in list(self._entries) if fnmatch.fnmatchcase(k, pattern)]
        for key in keys:
            self._entries.pop(key, None)
        return len(keys)

    async def invalidate_all(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count

    def cleanup_expired(self) -> int:
        """Remove all expired entries."""
        now = self.clock()
        expired = [k for k, e in list(self._entries.items()) if self._is_expired(e, now)]
        for key in expired:
            self._entries.pop(key, None)
        return len(expired)


class NullAvailabilityCache:
    """Always-miss cache. Valid configuration, only costs latency."""

    async def get(self, key: str) -> Any | None:
        return None

    async def put(self, key: str, value: Any) -> None:
        return None

    async def invalidate(self, key: str) -> bool:
        return False

    async def invalidate_matching(self, pattern: str) -> int:
        return 0

    async def invalidate_all(self) -> int:
        return 0
