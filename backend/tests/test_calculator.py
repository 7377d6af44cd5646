from datetime import date, datetime

import pytest

from barbershop.services.slots import BookingConfig, day_slots, initial_slots

MONDAY = date(2024, 6, 10)
EARLIER = datetime(2024, 6, 1, 8, 0)


def test_initial_slots_default_grid():
    slots = initial_slots()
    assert len(slots) == 16
    assert slots[0] == "09:00"
    assert slots[-1] == "16:30"


def test_initial_slots_close_is_exclusive():
    assert initial_slots("09:00", "10:00", 30) == ["09:00", "09:30"]


def test_initial_slots_empty_when_open_equals_close():
    assert initial_slots("09:00", "09:00", 30) == []


def test_initial_slots_rejects_non_positive_step():
    with pytest.raises(ValueError):
        initial_slots("09:00", "17:00", 0)


def test_day_slots_future_day_keeps_whole_grid(config):
    slots = day_slots(MONDAY, 30, config, now=EARLIER)
    assert slots == initial_slots()


def test_day_slots_today_drops_started_slots(config):
    now = datetime(2024, 6, 10, 10, 10)
    slots = day_slots(MONDAY, 30, config, now=now)
    assert slots[0] == "10:30"
    assert "10:00" not in slots


def test_day_slots_slot_starting_now_is_kept(config):
    now = datetime(2024, 6, 10, 10, 0)
    assert day_slots(MONDAY, 30, config, now=now)[0] == "10:00"


def test_day_slots_past_day_is_not_filtered_by_time(config):
    now = datetime(2024, 6, 11, 16, 0)
    assert len(day_slots(MONDAY, 30, config, now=now)) == 16


def test_day_slots_drops_overrun_past_closing(config):
    slots = day_slots(MONDAY, 50, config, now=EARLIER)
    assert slots[-1] == "16:00"
    assert "16:30" not in slots


def test_day_slots_floors_to_step():
    config = BookingConfig(open_time="09:15", close_time="11:00", slot_step_minutes=30)
    # 09:15, 09:45, 10:15, 10:45 → 09:00, 09:30, 10:00; 10:45 + 30 > 11:00
    assert day_slots(MONDAY, 30, config, now=EARLIER) == ["09:00", "09:30", "10:00"]


def test_day_slots_sorted_and_unique(config):
    slots = day_slots(MONDAY, 15, config, now=EARLIER)
    assert slots == sorted(set(slots))
