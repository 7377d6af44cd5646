"""
Booking writer: create / cancel / status changes.

Appointment lifecycle:
    requested → confirmed → cancelled (terminal)
    requested → rejected  (SlotConflict, never persisted)

create_appointment re-checks availability against storage (never the
cache), then relies on the store's conditional insert as the final word:
a conflict there is reported exactly like a failed re-check.
"""

import logging
from datetime import datetime
from typing import Awaitable, Callable, Protocol

from ..errors import ConflictError, InvalidTransition, SlotConflict
from ..models.tables import AppointmentStatus, RecurringStatus
from ..schemas.appointments import AppointmentCreate, AppointmentRead
from ..schemas.recurring import RecurringCreate, RecurringRead
from .catalog import duration_of
from .events import ChangeEvent, ChangeFeed, ChangeKind
from .slots.availability import AvailabilityChecker
from .slots.cache import CacheBackend
from .slots.config import BookingConfig, get_booking_config
from .slots.invalidator import invalidate_for_appointment, invalidate_for_recurring
from .storage import AppointmentStore

logger = logging.getLogger(__name__)


class CancellationNotifier(Protocol):
    def notify_cancellation(self, appointment: AppointmentRead) -> Awaitable[None]: ...


class BookingWriter:
    def __init__(
        self,
        store: AppointmentStore,
        checker: AvailabilityChecker,
        cache: CacheBackend,
        feed: ChangeFeed | None = None,
        notifier: CancellationNotifier | None = None,
        config: BookingConfig | None = None,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.checker = checker
        self.cache = cache
        self.feed = feed
        self.notifier = notifier
        self.config = config or get_booking_config()
        self.now = now

    def duration_of(self, service_name: str) -> int:
        return duration_of(service_name, self.config.default_service_duration)

    async def _publish(self, kind: ChangeKind, appointment: AppointmentRead) -> None:
        if self.feed is not None:
            await self.feed.publish(ChangeEvent(kind=kind, record=appointment))

    # ── Appointments ─────────────────────────────────────────────────────

    async def create_appointment(self, data: AppointmentCreate) -> AppointmentRead:
        """
        Persist a confirmed appointment if its interval is still free.

        Raises:
            SlotConflict: interval taken (re-check or storage rejection)
            DataSourceError: storage failed; nothing is assumed written
        """
        duration = self.duration_of(data.service_name)

        free = await self.checker.is_normal_slot_free(
            data.date, data.start_time, duration, use_cache=False
        )
        if not free:
            logger.warning(f"Rejected booking {data.date} {data.start_time} ({data.service_name}): slot taken")
            raise SlotConflict()

        try:
            appointment = await self.store.insert_appointment(data, duration, self.duration_of)
        except ConflictError as e:
            logger.warning(f"Rejected booking {data.date} {data.start_time} ({data.service_name}): {e}")
            raise SlotConflict() from e

        await invalidate_for_appointment(self.cache, appointment)
        await self._publish(ChangeKind.INSERT, appointment)

        logger.info(
            f"Appointment created: id={appointment.id}, "
            f"service={appointment.service_name}, time={appointment.date} {appointment.start_time}"
        )
        return appointment

    async def cancel_appointment(self, id: int) -> AppointmentRead:
        """
        Cancel an appointment. Cancelling twice is a no-op.

        The barber notification is best effort: its failure is logged
        and the cancellation stands.
        """
        current = await self.store.get_appointment(id)
        if current.status == AppointmentStatus.CANCELLED:
            return current

        appointment = await self.store.update_appointment_status(id, AppointmentStatus.CANCELLED)

        await invalidate_for_appointment(self.cache, appointment)
        await self._publish(ChangeKind.UPDATE, appointment)
        logger.info(f"Appointment cancelled: id={appointment.id}, time={appointment.date} {appointment.start_time}")

        if self.notifier is not None:
            try:
                await self.notifier.notify_cancellation(appointment)
            except Exception:
                logger.exception(f"Cancellation notice failed for appointment {appointment.id}")

        return appointment

    async def update_status(self, id: int, status: AppointmentStatus) -> AppointmentRead:
        """Barber status change. A cancelled appointment cannot be confirmed again."""
        status = AppointmentStatus(status)
        current = await self.store.get_appointment(id)

        if current.status == status:
            return current
        if current.status == AppointmentStatus.CANCELLED and status == AppointmentStatus.CONFIRMED:
            raise InvalidTransition(f"Appointment {id} is cancelled and cannot be confirmed again")

        appointment = await self.store.update_appointment_status(id, status)

        await invalidate_for_appointment(self.cache, appointment)
        await self._publish(ChangeKind.UPDATE, appointment)
        logger.info(f"Appointment {id} status: {current.status.value} → {status.value}")
        return appointment

    # ── Recurring appointments ───────────────────────────────────────────

    async def create_recurring(self, data: RecurringCreate) -> RecurringRead:
        """
        Add a weekly block unless it overlaps another active block on that
        weekday or a confirmed appointment from today on that weekday.
        """
        duration = self.duration_of(data.service_name)

        free = await self.checker.is_recurring_slot_free(
            data.weekday, data.start_time, duration, use_cache=False
        )
        if not free:
            logger.warning(f"Rejected recurring block weekday={data.weekday} {data.start_time}: slot taken")
            raise SlotConflict()

        try:
            recurring = await self.store.insert_recurring(
                data, duration, self.now().date(), self.duration_of
            )
        except ConflictError as e:
            logger.warning(f"Rejected recurring block weekday={data.weekday} {data.start_time}: {e}")
            raise SlotConflict() from e

        await invalidate_for_recurring(self.cache)

        logger.info(f"Recurring appointment created: id={recurring.id}, weekday={recurring.weekday} {recurring.start_time}")
        return recurring

    async def update_recurring_status(self, id: int, status: RecurringStatus) -> RecurringRead:
        """Reactivating a block is rejected with SlotConflict when its time was taken meanwhile."""
        try:
            recurring = await self.store.update_recurring_status(
                id, status, self.now().date(), self.duration_of
            )
        except ConflictError as e:
            logger.warning(f"Rejected reactivation of recurring appointment {id}: {e}")
            raise SlotConflict() from e

        await invalidate_for_recurring(self.cache)
        logger.info(f"Recurring appointment {id} status: {recurring.status.value}")
        return recurring

    async def delete_recurring(self, id: int) -> RecurringRead:
        recurring = await self.store.delete_recurring(id)
        await invalidate_for_recurring(self.cache)
        logger.info(f"Recurring appointment deleted: id={id}")
        return recurring
