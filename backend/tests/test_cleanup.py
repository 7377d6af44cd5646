import asyncio
from datetime import date

from barbershop.models.tables import AppointmentStatus
from barbershop.services.cleanup import cleanup_checker_loop, run_cleanup
from barbershop.services.slots.cache import normal_key

MONDAY = date(2024, 6, 10)
TUESDAY = date(2024, 6, 11)


async def test_removes_cancelled_and_expired(engine, appointment_data, recurring_data):
    old = await engine.create_appointment(appointment_data(date=date(2024, 6, 3)))
    cancelled = await engine.create_appointment(appointment_data(start_time="11:00"))
    await engine.cancel_appointment(cancelled.id)
    kept = await engine.create_appointment(appointment_data(start_time="14:00"))
    await engine.create_recurring(recurring_data(weekday=3))

    result = await run_cleanup(engine, today=date(2024, 6, 10), retention_days=1)

    assert result == {"cancelled": 1, "expired": 1, "total": 2}
    remaining = await engine.list_appointments()
    assert [a.id for a in remaining] == [kept.id]
    assert old.id not in [a.id for a in remaining]
    assert len(await engine.list_recurring()) == 1


async def test_yesterday_is_kept_with_one_day_retention(engine, appointment_data):
    await engine.create_appointment(appointment_data(date=date(2024, 6, 9)))

    result = await run_cleanup(engine, today=date(2024, 6, 10), retention_days=1)

    assert result["total"] == 0
    assert len(await engine.list_appointments(status=AppointmentStatus.CONFIRMED)) == 1


async def test_cleanup_invalidates_dates_that_lost_rows(engine, cache, appointment_data):
    appointment = await engine.create_appointment(appointment_data())
    await engine.cancel_appointment(appointment.id)
    await cache.put(normal_key(MONDAY, "15:00", 30), True)
    await cache.put(normal_key(TUESDAY, "15:00", 30), True)

    await run_cleanup(engine, today=MONDAY)

    assert await cache.get(normal_key(MONDAY, "15:00", 30)) is None
    assert await cache.get(normal_key(TUESDAY, "15:00", 30)) is True


async def test_cleanup_forgets_snapshot_before_cutoff(engine, appointment_data):
    old = date(2024, 6, 3)
    await engine.create_appointment(appointment_data(date=old))
    await engine.create_appointment(appointment_data())
    assert len(engine.local_appointments(old)) == 1

    await run_cleanup(engine, today=MONDAY)

    assert engine.local_appointments(old) == []
    assert len(engine.local_appointments(MONDAY)) == 1
    assert engine.forget_before(MONDAY) == 0


async def test_cleanup_nothing_to_do_keeps_cache(engine, cache):
    await cache.put(normal_key(MONDAY, "15:00", 30), True)

    result = await run_cleanup(engine, today=MONDAY)

    assert result["total"] == 0
    assert len(cache) == 1


async def test_loop_stops_on_cancel(engine):
    task = asyncio.create_task(cleanup_checker_loop(engine, interval_seconds=3600))
    await asyncio.sleep(0.05)
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)
    assert task.done()
