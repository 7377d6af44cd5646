# backend/barbershop/services/slots/calculator.py
"""
Candidate slot generation.

Produces "HH:MM" start times on a fixed grid inside business hours.
The grid is the same for every day.

Contains:
✓ business hours (open inclusive, close exclusive)
✓ past slots for today (day_slots only)
✓ service end past closing time (day_slots only)

Does NOT contain:
✗ Appointments / recurring blocks (checked in availability)
"""

from datetime import date, datetime

from .config import BookingConfig, get_booking_config, to_minutes, minutes_to_time_str


def initial_slots(
    open_time: str = "09:00",
    close_time: str = "17:00",
    step_minutes: int = 30,
) -> list[str]:
    """
    Enumerate start times from open_time up to (not including) close_time.

    09:00-17:00 step 30 → ["09:00", "09:30", ..., "16:30"] (16 slots)
    """
    if step_minutes <= 0:
        raise ValueError(f"step_minutes must be positive, got {step_minutes}")

    start_min = to_minutes(open_time)
    end_min = to_minutes(close_time)

    slots: list[str] = []
    t = start_min
    while t < end_min:
        slots.append(minutes_to_time_str(t))
        t += step_minutes

    return slots


def day_slots(
    target_date: date,
    duration: int,
    config: BookingConfig | None = None,
    now: datetime | None = None,
) -> list[str]:
    """
    Candidate slots for a specific day and service duration.

    Drops slots that already started (when target_date is today) and
    slots where the service would run past closing time. The survivors
    are floored to the grid step, deduplicated and sorted.
    """
    config = config or get_booking_config()
    now = now or datetime.now()
    step = config.slot_step_minutes
    close_min = config.close_minutes
    now_min = now.hour * 60 + now.minute
    is_today = target_date == now.date()

    grid: set[int] = set()
    for time_str in initial_slots(config.open_time, config.close_time, step):
        t = to_minutes(time_str)

        if is_today and t < now_min:
            continue

        if t + duration > close_min:
            continue

        # Inputs are already on the grid; the floor keeps the output aligned
        # even if open_time is not.
        grid.add((t // step) * step)

    return [minutes_to_time_str(t) for t in sorted(grid)]
