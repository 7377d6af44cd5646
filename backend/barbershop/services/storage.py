# backend/barbershop/services/storage.py
"""
Storage collaborator: appointments and recurring blocks in SQL.

All methods are async (SQLAlchemy asyncio). Driver errors surface as
DataSourceError, overlap and unique-index rejections as ConflictError,
unknown ids as NotFound.

Writes that can create an overlap (insert_appointment, insert_recurring,
reactivating a recurring block) are conditional: they take the write lock
first, then re-check overlaps inside the same transaction.

    SQLite      BEGIN IMMEDIATE (database write lock, waits up to the
                connection timeout)
    PostgreSQL  pg_advisory_xact_lock on a fixed key

The partial unique index on (date, start_time) stays as a second line
for confirmed twins.
"""

import logging
from contextlib import asynccontextmanager
from datetime import date

from sqlalchemy import delete, or_, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..errors import ConflictError, DataSourceError, NotFound
from ..models.tables import (
    Appointments as DBAppointments,
    AppointmentStatus,
    RecurringAppointments as DBRecurring,
    RecurringStatus,
)
from ..schemas.appointments import AppointmentCreate, AppointmentRead
from ..schemas.recurring import RecurringCreate, RecurringRead
from .catalog import duration_of as catalog_duration_of
from .slots.availability import DurationOf, conflicts_with
from .slots.config import weekday_of

logger = logging.getLogger(__name__)

# Advisory lock key shared by every booking writer (value is arbitrary)
BOOKING_WRITE_LOCK_KEY = 7_201_405


class AppointmentStore:
    """SQL-backed storage for appointments and recurring appointments."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @asynccontextmanager
    async def _session(self):
        try:
            async with self.session_factory() as session:
                yield session
        except IntegrityError as e:
            raise ConflictError(f"Storage rejected write: {e.orig}") from e
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Storage error: {e}")
            raise DataSourceError(str(e)) from e

    # ── Appointments: read ───────────────────────────────────────────────

    async def list_appointments(
        self,
        date: date | None = None,
        status: AppointmentStatus | None = None,
        email: str | None = None,
        exclude_status: AppointmentStatus | None = None,
    ) -> list[AppointmentRead]:
        """Appointments matching the filter, sorted by date then start time."""
        stmt = select(DBAppointments)
        if date is not None:
            stmt = stmt.where(DBAppointments.date == date.isoformat())
        if status is not None:
            stmt = stmt.where(DBAppointments.status == AppointmentStatus(status).value)
        if email is not None:
            stmt = stmt.where(DBAppointments.email == email)
        if exclude_status is not None:
            stmt = stmt.where(DBAppointments.status != AppointmentStatus(exclude_status).value)
        stmt = stmt.order_by(DBAppointments.date, DBAppointments.start_time, DBAppointments.id)

        async with self._session() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [AppointmentRead.model_validate(r) for r in rows]

    async def get_appointment(self, id: int) -> AppointmentRead:
        async with self._session() as session:
            obj = await session.get(DBAppointments, id)
            if not obj:
                raise NotFound(f"Appointment {id} not found")
            return AppointmentRead.model_validate(obj)

    # ── Write lock and in-transaction checks ─────────────────────────────

    async def _write_lock(self, session: AsyncSession) -> None:
        """
        Serialize booking writers for the rest of the transaction.

        Must run before the first read of the check, otherwise two writers
        can both read a free interval and both insert.
        """
        conn = await session.connection()
        dialect = conn.dialect.name
        if dialect == "sqlite":
            await conn.exec_driver_sql("BEGIN IMMEDIATE")
        elif dialect == "postgresql":
            await conn.execute(
                text("SELECT pg_advisory_xact_lock(:key)"),
                {"key": BOOKING_WRITE_LOCK_KEY},
            )

    @staticmethod
    async def _active_recurring(session: AsyncSession, weekday: int, exclude_id: int | None = None):
        stmt = select(DBRecurring).where(
            DBRecurring.weekday == weekday,
            DBRecurring.status == RecurringStatus.ACTIVE.value,
        )
        if exclude_id is not None:
            stmt = stmt.where(DBRecurring.id != exclude_id)
        return (await session.execute(stmt)).scalars().all()

    @staticmethod
    async def _confirmed_on_weekday(session: AsyncSession, weekday: int, from_date: date):
        """Confirmed appointments dated from_date or later that fall on weekday."""
        rows = (
            await session.execute(
                select(DBAppointments).where(
                    DBAppointments.date >= from_date.isoformat(),
                    DBAppointments.status == AppointmentStatus.CONFIRMED.value,
                )
            )
        ).scalars().all()
        return [r for r in rows if weekday_of(date.fromisoformat(r.date)) == weekday]

    async def _check_recurring_free(
        self,
        session: AsyncSession,
        weekday: int,
        start_time: str,
        duration: int,
        duration_of: DurationOf,
        from_date: date,
        exclude_id: int | None = None,
    ) -> None:
        clash = conflicts_with(
            start_time, duration,
            await self._active_recurring(session, weekday, exclude_id),
            duration_of,
        )
        if clash is not None:
            raise ConflictError(
                f"Weekday {weekday} {start_time} overlaps recurring appointment {clash.id} at {clash.start_time}"
            )

        clash = conflicts_with(
            start_time, duration,
            await self._confirmed_on_weekday(session, weekday, from_date),
            duration_of,
        )
        if clash is not None:
            raise ConflictError(
                f"Weekday {weekday} {start_time} overlaps appointment {clash.id} on {clash.date} at {clash.start_time}"
            )

    # ── Appointments: write ──────────────────────────────────────────────

    async def insert_appointment(
        self,
        data: AppointmentCreate,
        duration: int,
        duration_of: DurationOf = catalog_duration_of,
    ) -> AppointmentRead:
        """
        Insert a confirmed appointment unless it overlaps a confirmed
        appointment of its date or an active recurring block of its weekday.

        duration_of measures the bookings already stored.
        Raises ConflictError when the interval is taken.
        """
        async with self._session() as session:
            await self._write_lock(session)

            existing = (
                await session.execute(
                    select(DBAppointments).where(
                        DBAppointments.date == data.date.isoformat(),
                        DBAppointments.status == AppointmentStatus.CONFIRMED.value,
                    )
                )
            ).scalars().all()

            clash = conflicts_with(data.start_time, duration, existing, duration_of)
            if clash is not None:
                raise ConflictError(
                    f"{data.date} {data.start_time} overlaps appointment {clash.id} at {clash.start_time}"
                )

            weekday = weekday_of(data.date)
            clash = conflicts_with(
                data.start_time, duration,
                await self._active_recurring(session, weekday),
                duration_of,
            )
            if clash is not None:
                raise ConflictError(
                    f"{data.date} {data.start_time} overlaps recurring appointment {clash.id} at {clash.start_time}"
                )

            obj = DBAppointments(
                client_name=data.client_name,
                phone=data.phone,
                service_name=data.service_name,
                date=data.date.isoformat(),
                start_time=data.start_time,
                status=AppointmentStatus.CONFIRMED.value,
                email=data.email,
            )
            session.add(obj)
            await session.commit()
            await session.refresh(obj)
            return AppointmentRead.model_validate(obj)

    async def update_appointment_status(self, id: int, status: AppointmentStatus) -> AppointmentRead:
        async with self._session() as session:
            obj = await session.get(DBAppointments, id)
            if not obj:
                raise NotFound(f"Appointment {id} not found")
            obj.status = AppointmentStatus(status).value
            await session.commit()
            await session.refresh(obj)
            return AppointmentRead.model_validate(obj)

    async def delete_expired(self, cutoff: date) -> dict:
        """
        Delete cancelled appointments and appointments dated before cutoff.

        Returns counts plus the dates that lost rows.
        """
        condition = or_(
            DBAppointments.status == AppointmentStatus.CANCELLED.value,
            DBAppointments.date < cutoff.isoformat(),
        )
        async with self._session() as session:
            rows = (
                await session.execute(
                    select(DBAppointments.id, DBAppointments.date, DBAppointments.status).where(condition)
                )
            ).all()

            if rows:
                await session.execute(
                    delete(DBAppointments).where(DBAppointments.id.in_([r.id for r in rows]))
                )
                await session.commit()

        cutoff_iso = cutoff.isoformat()
        return {
            "cancelled": sum(1 for r in rows if r.status == AppointmentStatus.CANCELLED.value),
            "expired": sum(1 for r in rows if r.date < cutoff_iso),
            "total": len(rows),
            "dates": sorted({r.date for r in rows}),
        }

    # ── Recurring appointments ───────────────────────────────────────────

    async def list_recurring_appointments(
        self,
        weekday: int | None = None,
        status: RecurringStatus | None = None,
    ) -> list[RecurringRead]:
        stmt = select(DBRecurring)
        if weekday is not None:
            stmt = stmt.where(DBRecurring.weekday == weekday)
        if status is not None:
            stmt = stmt.where(DBRecurring.status == RecurringStatus(status).value)
        stmt = stmt.order_by(DBRecurring.weekday, DBRecurring.start_time, DBRecurring.id)

        async with self._session() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [RecurringRead.model_validate(r) for r in rows]

    async def insert_recurring(
        self,
        data: RecurringCreate,
        duration: int,
        from_date: date,
        duration_of: DurationOf = catalog_duration_of,
    ) -> RecurringRead:
        """
        Insert an active weekly block unless it overlaps another active block
        of its weekday or a confirmed appointment on that weekday dated
        from_date or later.

        Raises ConflictError when the interval is taken.
        """
        async with self._session() as session:
            await self._write_lock(session)
            await self._check_recurring_free(
                session, data.weekday, data.start_time, duration, duration_of, from_date
            )

            obj = DBRecurring(
                client_name=data.client_name,
                phone=data.phone,
                service_name=data.service_name,
                weekday=data.weekday,
                start_time=data.start_time,
                status=RecurringStatus.ACTIVE.value,
            )
            session.add(obj)
            await session.commit()
            await session.refresh(obj)
            return RecurringRead.model_validate(obj)

    async def update_recurring_status(
        self,
        id: int,
        status: RecurringStatus,
        from_date: date | None = None,
        duration_of: DurationOf = catalog_duration_of,
    ) -> RecurringRead:
        """
        Activate or deactivate a weekly block.

        Reactivation runs the same overlap checks as insert_recurring
        (the block itself excluded) and raises ConflictError when taken.
        """
        status = RecurringStatus(status)
        async with self._session() as session:
            if status == RecurringStatus.ACTIVE:
                await self._write_lock(session)

            obj = await session.get(DBRecurring, id)
            if not obj:
                raise NotFound(f"Recurring appointment {id} not found")

            if status == RecurringStatus.ACTIVE and obj.status != RecurringStatus.ACTIVE.value:
                await self._check_recurring_free(
                    session,
                    obj.weekday,
                    obj.start_time,
                    duration_of(obj.service_name),
                    duration_of,
                    from_date or date.today(),
                    exclude_id=obj.id,
                )

            obj.status = status.value
            await session.commit()
            await session.refresh(obj)
            return RecurringRead.model_validate(obj)

    async def delete_recurring(self, id: int) -> RecurringRead:
        async with self._session() as session:
            obj = await session.get(DBRecurring, id)
            if not obj:
                raise NotFound(f"Recurring appointment {id} not found")
            record = RecurringRead.model_validate(obj)
            await session.delete(obj)
            await session.commit()
            return record
