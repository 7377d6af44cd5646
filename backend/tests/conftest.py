"""Shared test fixtures."""
import pytest
from datetime import date, datetime

from barbershop.database import init_db, make_engine, make_session_factory
from barbershop.schemas.appointments import AppointmentCreate
from barbershop.schemas.recurring import RecurringCreate
from barbershop.services.engine import BookingEngine
from barbershop.services.slots import AvailabilityCache, BookingConfig
from barbershop.services.storage import AppointmentStore

MONDAY = date(2024, 6, 10)


class FakeClock:
    """Monotonic clock driven by the test."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    async def notify_cancellation(self, appointment):
        self.sent.append(appointment)


@pytest.fixture
async def db_engine(tmp_path):
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def store(db_engine) -> AppointmentStore:
    return AppointmentStore(make_session_factory(db_engine))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock) -> AvailabilityCache:
    return AvailabilityCache(ttl_seconds=3.0, clock=clock)


@pytest.fixture
def config() -> BookingConfig:
    return BookingConfig()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def engine(store, cache, notifier, config):
    """Engine whose 'now' is well before the dates used in tests."""
    booking_engine = BookingEngine(
        store,
        cache=cache,
        notifier=notifier,
        config=config,
        now=lambda: datetime(2024, 6, 1, 8, 0),
    )
    yield booking_engine
    booking_engine.close()


@pytest.fixture
def appointment_data():
    """Factory for AppointmentCreate with sensible defaults."""
    def _create(**overrides) -> AppointmentCreate:
        fields = {
            "client_name": "João Silva",
            "phone": "(11) 99999-0000",
            "service_name": "Corte de Cabelo",
            "date": MONDAY,
            "start_time": "10:00",
            "email": "joao@example.com",
        }
        fields.update(overrides)
        return AppointmentCreate(**fields)
    return _create


@pytest.fixture
def recurring_data():
    """Factory for RecurringCreate with sensible defaults (Monday 10:00)."""
    def _create(**overrides) -> RecurringCreate:
        fields = {
            "client_name": "Carlos Souza",
            "phone": "11988887777",
            "service_name": "Corte de Cabelo",
            "weekday": 1,
            "start_time": "10:00",
        }
        fields.update(overrides)
        return RecurringCreate(**fields)
    return _create
