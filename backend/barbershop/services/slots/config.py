# backend/barbershop/services/slots/config.py
"""
Booking configuration and minute-precision time helpers.
"""

import re
from dataclasses import dataclass
from datetime import date
from functools import lru_cache

from ...errors import ParseError


_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


def to_minutes(hhmm: str) -> int:
    """
    Convert "HH:MM" to minutes since midnight.

    Raises ParseError on anything that is not a valid 24h clock time.
    """
    if not isinstance(hhmm, str):
        raise ParseError(f"Time must be a string in HH:MM format, got {hhmm!r}")

    match = _TIME_RE.match(hhmm.strip())
    if not match:
        raise ParseError(f"Time must be in HH:MM format, got {hhmm!r}")

    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ParseError(f"Time out of range: {hhmm!r}")

    return hour * 60 + minute


def minutes_to_time_str(minutes: int) -> str:
    """Convert minutes since midnight to "HH:MM"."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def overlaps(start1: str, dur1: int, start2: str, dur2: int) -> bool:
    """
    Half-open interval intersection test.

    09:00+50 vs 09:30+30 → 540 < 600 and 590 > 570 → True
    09:00+30 vs 09:30+30 → 570 > 570 is False → touching, no overlap
    """
    begin1 = to_minutes(start1)
    end1 = begin1 + dur1
    begin2 = to_minutes(start2)
    end2 = begin2 + dur2
    return begin1 < end2 and end1 > begin2


def weekday_of(target_date: date) -> int:
    """Weekday number with 0 = Sunday ... 6 = Saturday."""
    return (target_date.weekday() + 1) % 7


@dataclass(frozen=True)
class BookingConfig:
    """
    Configuration for the slot grid and availability cache.

    Attributes:
        open_time: First bookable start time "HH:MM" (inclusive)
        close_time: Closing time "HH:MM" (exclusive for starts)
        slot_step_minutes: Grid step in minutes (15/30/60)
        cache_ttl_ms: Availability cache TTL in milliseconds
        default_service_duration: Duration used for unknown services
    """
    open_time: str = "09:00"
    close_time: str = "17:00"
    slot_step_minutes: int = 30  # 15 / 30 / 60
    cache_ttl_ms: int = 3000
    default_service_duration: int = 30

    def __post_init__(self):
        """Validate configuration."""
        if self.slot_step_minutes not in (15, 30, 60):
            raise ValueError(f"slot_step_minutes must be 15, 30, or 60, got {self.slot_step_minutes}")
        if to_minutes(self.open_time) >= to_minutes(self.close_time):
            raise ValueError(f"open_time {self.open_time} must be before close_time {self.close_time}")
        if self.cache_ttl_ms < 0:
            raise ValueError(f"cache_ttl_ms must not be negative, got {self.cache_ttl_ms}")
        if self.default_service_duration <= 0:
            raise ValueError("default_service_duration must be positive")

    @property
    def open_minutes(self) -> int:
        return to_minutes(self.open_time)

    @property
    def close_minutes(self) -> int:
        return to_minutes(self.close_time)

    @property
    def cache_ttl_seconds(self) -> float:
        return self.cache_ttl_ms / 1000


@lru_cache
def get_booking_config() -> BookingConfig:
    """Get booking configuration (singleton, built from settings)."""
    from ...config import settings

    return BookingConfig(
        open_time=settings.open_time,
        close_time=settings.close_time,
        slot_step_minutes=settings.slot_step_minutes,
        cache_ttl_ms=settings.cache_ttl_ms,
        default_service_duration=settings.default_service_duration,
    )
