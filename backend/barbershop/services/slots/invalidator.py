# backend/barbershop/services/slots/invalidator.py
"""
Cache invalidation for availability results.

Triggers:
✓ Appointment created / status changed → every key of its date + weekday
✓ Recurring appointment created / status changed / deleted → whole cache
  (a weekly block touches every date on that weekday)
✓ Change feed events (other sessions, other processes) → same as above
✓ Manual invalidation of one (date, time, weekday)
"""

import logging
from datetime import date

from ...schemas.appointments import AppointmentRead
from .cache import CacheBackend, date_patterns
from .config import weekday_of

logger = logging.getLogger(__name__)


async def invalidate_slot(
    cache: CacheBackend,
    target_date: date,
    start_time: str,
    weekday: int,
) -> int:
    """
    Drop cached results for one start time and the day list of its date.

    Returns:
        Number of deleted cache keys
    """
    iso = target_date.isoformat()
    deleted = 0
    for pattern in (
        f"normal:{iso}:{start_time}:*",
        f"recurring:{weekday}:{start_time}:*",
        f"day:{iso}:*",
    ):
        deleted += await cache.invalidate_matching(pattern)
    return deleted


async def invalidate_date(cache: CacheBackend, target_date: date) -> int:
    """Drop every cached result that an appointment on target_date can affect."""
    deleted = 0
    for pattern in date_patterns(target_date, weekday_of(target_date)):
        deleted += await cache.invalidate_matching(pattern)
    return deleted


async def invalidate_for_appointment(cache: CacheBackend, appointment: AppointmentRead) -> int:
    """
    A booking interval also blocks neighbouring start times,
    so the whole date is invalidated, not just its own start time.
    """
    deleted = await invalidate_date(cache, appointment.date)
    logger.debug(f"Invalidated {deleted} cache keys for {appointment.date} {appointment.start_time}")
    return deleted


async def invalidate_for_recurring(cache: CacheBackend) -> int:
    deleted = await cache.invalidate_all()
    logger.debug(f"Invalidated {deleted} cache keys after recurring change")
    return deleted


def change_event_invalidator(cache: CacheBackend):
    """ChangeFeed subscriber that invalidates the record's date."""

    async def on_change(event) -> None:
        await invalidate_for_appointment(cache, event.record)

    return on_change
