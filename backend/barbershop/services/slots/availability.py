# backend/barbershop/services/slots/availability.py
"""
Overlap / availability checks.

A start time is free for a duration when its interval overlaps neither
a non-cancelled appointment on the date nor an active recurring block
on the date's weekday.

Takes into account:
- One-off appointments (status != cancelled)
- Recurring appointments (status == active, same weekday)
- Service durations from the catalog

Results go through the availability cache when one is given. The cache is
written only after a check completes, so an abandoned check leaves no trace.
"""

import logging
from datetime import date
from typing import Callable, Iterable, Protocol

from ...models.tables import AppointmentStatus, RecurringStatus
from ...schemas.appointments import AppointmentRead
from ...schemas.recurring import RecurringRead
from ..catalog import duration_of as catalog_duration_of
from .cache import CacheBackend, NullAvailabilityCache, day_key, normal_key, recurring_key
from .config import overlaps, to_minutes, weekday_of

logger = logging.getLogger(__name__)

DurationOf = Callable[[str], int]


class AvailabilitySource(Protocol):
    async def list_appointments(self, date=None, status=None, email=None, exclude_status=None) -> list[AppointmentRead]: ...
    async def list_recurring_appointments(self, weekday=None, status=None) -> list[RecurringRead]: ...


def conflicts_with(
    start_time: str,
    duration: int,
    bookings: Iterable[AppointmentRead | RecurringRead],
    duration_of: DurationOf = catalog_duration_of,
):
    """
    First booking whose interval overlaps (start_time, duration), if any.

    Bookings only need `start_time` and `service_name`, so ORM rows work too.
    """
    for booking in bookings:
        if overlaps(booking.start_time, duration_of(booking.service_name), start_time, duration):
            return booking
    return None


def free_slots(
    candidate_slots: Iterable[str],
    duration: int,
    appointments: Iterable[AppointmentRead],
    recurring: Iterable[RecurringRead] = (),
    duration_of: DurationOf = catalog_duration_of,
) -> list[str]:
    """Candidates (in input order) that overlap nothing."""
    appointments = [a for a in appointments if a.status != AppointmentStatus.CANCELLED]
    recurring = list(recurring)
    return [
        slot for slot in candidate_slots
        if conflicts_with(slot, duration, appointments, duration_of) is None
        and conflicts_with(slot, duration, recurring, duration_of) is None
    ]


class AvailabilityChecker:
    """Availability queries against the storage collaborator."""

    def __init__(
        self,
        source: AvailabilitySource,
        cache: CacheBackend | None = None,
        on_day_loaded: Callable[[date, list[AppointmentRead]], None] | None = None,
        duration_of: DurationOf = catalog_duration_of,
    ):
        self.source = source
        self.cache = cache if cache is not None else NullAvailabilityCache()
        self.on_day_loaded = on_day_loaded
        self.duration_of = duration_of

    # ── Data ─────────────────────────────────────────────────────────────

    async def _day_appointments(self, target_date: date) -> list[AppointmentRead]:
        appointments = await self.source.list_appointments(
            date=target_date,
            exclude_status=AppointmentStatus.CANCELLED,
        )
        if self.on_day_loaded is not None:
            self.on_day_loaded(target_date, appointments)
        return appointments

    async def _weekday_recurring(self, weekday: int) -> list[RecurringRead]:
        return await self.source.list_recurring_appointments(
            weekday=weekday,
            status=RecurringStatus.ACTIVE,
        )

    # ── Checks ───────────────────────────────────────────────────────────

    async def is_normal_slot_free(
        self,
        target_date: date,
        start_time: str,
        duration: int,
        use_cache: bool = True,
    ) -> bool:
        """
        True when (start_time, duration) on target_date overlaps no
        appointment and no active recurring block of that weekday.

        use_cache=False reads the source of truth only (booking commit path).
        """
        to_minutes(start_time)
        key = normal_key(target_date, start_time, duration)

        if use_cache:
            cached = await self.cache.get(key)
            if cached is not None:
                return cached

        free = await self._compute_normal(target_date, start_time, duration)

        if use_cache:
            await self.cache.put(key, free)
        return free

    async def _compute_normal(self, target_date: date, start_time: str, duration: int) -> bool:
        appointments = await self._day_appointments(target_date)
        clash = conflicts_with(start_time, duration, appointments, self.duration_of)
        if clash is not None:
            logger.debug(f"{target_date} {start_time} conflicts with appointment #{clash.id}")
            return False

        recurring = await self._weekday_recurring(weekday_of(target_date))
        clash = conflicts_with(start_time, duration, recurring, self.duration_of)
        if clash is not None:
            logger.debug(f"{target_date} {start_time} conflicts with recurring #{clash.id}")
            return False

        return True

    async def is_recurring_slot_free(
        self,
        weekday: int,
        start_time: str,
        duration: int,
        use_cache: bool = True,
    ) -> bool:
        """True when (start_time, duration) overlaps no active recurring block on weekday."""
        to_minutes(start_time)
        key = recurring_key(weekday, start_time, duration)

        if use_cache:
            cached = await self.cache.get(key)
            if cached is not None:
                return cached

        recurring = await self._weekday_recurring(weekday)
        free = conflicts_with(start_time, duration, recurring, self.duration_of) is None

        if use_cache:
            await self.cache.put(key, free)
        return free

    async def list_open_slots(
        self,
        target_date: date,
        weekday: int,
        candidate_slots: list[str],
        duration: int,
    ) -> list[str]:
        """
        Filter candidate_slots down to the free ones, preserving order.

        Two queries per call (appointments of the date, recurring blocks of
        the weekday), then an in-memory overlap pass per candidate.
        """
        for slot in candidate_slots:
            to_minutes(slot)

        key = day_key(target_date, duration)
        cached = await self.cache.get(key)
        if cached is not None:
            return list(cached)

        appointments = await self._day_appointments(target_date)
        recurring = await self._weekday_recurring(weekday)
        slots = free_slots(candidate_slots, duration, appointments, recurring, self.duration_of)

        await self.cache.put(key, tuple(slots))
        return slots
