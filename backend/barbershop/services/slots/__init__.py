# backend/barbershop/services/slots/__init__.py
"""
Slots and availability module.

Grid: candidate start times inside business hours (calculator)
Check: overlap against appointments and recurring blocks (availability)
Cache: short-TTL advisory results (cache / redis_store / invalidator)
"""

from .config import (
    BookingConfig,
    get_booking_config,
    to_minutes,
    minutes_to_time_str,
    overlaps,
    weekday_of,
)
from .calculator import initial_slots, day_slots
from .cache import AvailabilityCache, NullAvailabilityCache
from .redis_store import RedisAvailabilityCache
from .availability import AvailabilityChecker, free_slots
from .invalidator import (
    invalidate_slot,
    invalidate_for_appointment,
    invalidate_for_recurring,
)

__all__ = [
    "BookingConfig",
    "get_booking_config",
    "to_minutes",
    "minutes_to_time_str",
    "overlaps",
    "weekday_of",
    "initial_slots",
    "day_slots",
    "AvailabilityCache",
    "NullAvailabilityCache",
    "RedisAvailabilityCache",
    "AvailabilityChecker",
    "free_slots",
    "invalidate_slot",
    "invalidate_for_appointment",
    "invalidate_for_recurring",
]
