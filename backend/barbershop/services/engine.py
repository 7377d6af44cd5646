"""
Booking engine: the core API used by the HTTP layer.

Wires storage, availability checker, cache, writer and change feed
together and keeps a per-date snapshot of the appointments it has seen.
The snapshot backs the degraded slot listing used when storage is
unreachable.
"""

import logging
from datetime import date, datetime
from typing import Callable, NamedTuple

from redis.asyncio import Redis

from ..errors import DataSourceError
from ..models.tables import AppointmentStatus, RecurringStatus
from ..schemas.appointments import AppointmentCreate, AppointmentRead
from ..schemas.recurring import RecurringCreate, RecurringRead
from .booking import BookingWriter, CancellationNotifier
from .catalog import duration_of
from .events import ChangeEvent, ChangeFeed, ChangeKind
from .slots.availability import AvailabilityChecker, free_slots
from .slots.cache import AvailabilityCache, CacheBackend, NullAvailabilityCache
from .slots.calculator import day_slots, initial_slots
from .slots.config import BookingConfig, get_booking_config, weekday_of
from .slots.invalidator import change_event_invalidator, invalidate_slot
from .slots.redis_store import RedisAvailabilityCache
from .storage import AppointmentStore

logger = logging.getLogger(__name__)


class OpenSlots(NamedTuple):
    slots: list[str]
    degraded: bool = False


def make_cache(backend: str, config: BookingConfig, redis: Redis | None = None) -> CacheBackend:
    """memory / redis / off"""
    if backend == "memory":
        return AvailabilityCache(ttl_seconds=config.cache_ttl_seconds)
    if backend == "redis":
        if redis is None:
            raise ValueError("cache_backend=redis needs a Redis client")
        return RedisAvailabilityCache(redis, config)
    if backend == "off":
        return NullAvailabilityCache()
    raise ValueError(f"Unknown cache backend: {backend!r}")


class BookingEngine:
    def __init__(
        self,
        store: AppointmentStore,
        cache: CacheBackend | None = None,
        feed: ChangeFeed | None = None,
        notifier: CancellationNotifier | None = None,
        config: BookingConfig | None = None,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.config = config or get_booking_config()
        self.cache = cache if cache is not None else NullAvailabilityCache()
        self.feed = feed if feed is not None else ChangeFeed()
        self.now = now

        self._local: dict[date, dict[int, AppointmentRead]] = {}

        self.checker = AvailabilityChecker(
            store,
            self.cache,
            on_day_loaded=self._remember_day,
            duration_of=self.duration_of,
        )
        self.writer = BookingWriter(
            store,
            self.checker,
            self.cache,
            feed=self.feed,
            notifier=notifier,
            config=self.config,
            now=now,
        )

        self._unsubscribe = [
            self.feed.subscribe(change_event_invalidator(self.cache)),
            self.feed.subscribe(self._remember_event),
        ]

    def close(self) -> None:
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []

    # ── Local snapshot ───────────────────────────────────────────────────

    def _remember_day(self, target_date: date, appointments: list[AppointmentRead]) -> None:
        self._local[target_date] = {a.id: a for a in appointments}

    def _remember_event(self, event: ChangeEvent) -> None:
        day = self._local.setdefault(event.record.date, {})
        if event.kind == ChangeKind.DELETE:
            day.pop(event.record.id, None)
        else:
            day[event.record.id] = event.record

    def forget_before(self, cutoff: date) -> int:
        """Drop snapshot days dated before cutoff. Returns the number of days dropped."""
        stale = [d for d in self._local if d < cutoff]
        for d in stale:
            del self._local[d]
        return len(stale)

    def local_appointments(self, target_date: date) -> list[AppointmentRead]:
        """Non-cancelled appointments last seen for target_date."""
        return [
            a for a in self._local.get(target_date, {}).values()
            if a.status != AppointmentStatus.CANCELLED
        ]

    # ── Slots ────────────────────────────────────────────────────────────

    def duration_of(self, service_name: str) -> int:
        return duration_of(service_name, self.config.default_service_duration)

    def get_initial_slots(self) -> list[str]:
        return initial_slots(
            self.config.open_time,
            self.config.close_time,
            self.config.slot_step_minutes,
        )

    async def get_open_slots(
        self,
        target_date: date,
        weekday: int | None,
        duration: int,
    ) -> OpenSlots:
        """
        Bookable start times for a service duration on target_date.

        On a storage failure, falls back to the locally held appointments of
        that date and returns degraded=True. Recurring blocks are not known
        locally, so the degraded answer may offer slots that are taken.
        """
        if weekday is None:
            weekday = weekday_of(target_date)
        candidates = day_slots(target_date, duration, self.config, self.now())

        try:
            slots = await self.checker.list_open_slots(target_date, weekday, candidates, duration)
        except DataSourceError as e:
            local = self.local_appointments(target_date)
            logger.warning(
                f"Slot listing for {target_date} degraded to {len(local)} local appointments: {e}"
            )
            return OpenSlots(free_slots(candidates, duration, local, duration_of=self.duration_of), degraded=True)

        return OpenSlots(slots)

    async def check_slot(self, target_date: date, start_time: str, duration: int) -> bool:
        return await self.checker.is_normal_slot_free(target_date, start_time, duration)

    # ── Appointments ─────────────────────────────────────────────────────

    async def list_appointments(
        self,
        target_date: date | None = None,
        status: AppointmentStatus | None = None,
        email: str | None = None,
    ) -> list[AppointmentRead]:
        return await self.store.list_appointments(date=target_date, status=status, email=email)

    async def create_appointment(self, data: AppointmentCreate) -> AppointmentRead:
        return await self.writer.create_appointment(data)

    async def cancel_appointment(self, id: int) -> AppointmentRead:
        return await self.writer.cancel_appointment(id)

    async def update_status(self, id: int, status: AppointmentStatus) -> AppointmentRead:
        return await self.writer.update_status(id, status)

    # ── Recurring ────────────────────────────────────────────────────────

    async def list_recurring(
        self,
        weekday: int | None = None,
        status: RecurringStatus | None = None,
    ) -> list[RecurringRead]:
        return await self.store.list_recurring_appointments(weekday=weekday, status=status)

    async def create_recurring(self, data: RecurringCreate) -> RecurringRead:
        return await self.writer.create_recurring(data)

    async def update_recurring_status(self, id: int, status: RecurringStatus) -> RecurringRead:
        return await self.writer.update_recurring_status(id, status)

    async def delete_recurring(self, id: int) -> RecurringRead:
        return await self.writer.delete_recurring(id)

    # ── Cache ────────────────────────────────────────────────────────────

    async def invalidate_cache(self, target_date: date, start_time: str, weekday: int) -> int:
        return await invalidate_slot(self.cache, target_date, start_time, weekday)

    async def clear_cache(self) -> int:
        return await self.cache.invalidate_all()
