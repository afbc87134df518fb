from dataclasses import dataclass
from datetime import date
from typing import List

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from gobus_booking_platform.models import Base, Bus, Route, User
from gobus_booking_platform.services.booking_service import BookingService
from gobus_booking_platform.services.notification_service import BookingConfirmation
from gobus_booking_platform.services.reservation_service import (
    ReservationOrchestrator,
    ReservationRequest,
)
from gobus_booking_platform.utils.retry import RetryConfig


TRAVEL_DATE = date(2025, 3, 1)


class RecordingNotifier:
    """Stands in for the notification dispatcher and keeps what it was given."""

    def __init__(self):
        self.confirmations: List[BookingConfirmation] = []

    def dispatch_booking_confirmation(self, confirmation: BookingConfirmation) -> None:
        self.confirmations.append(confirmation)


class InMemoryCache:
    """Dictionary-backed stand-in for the Redis store."""

    def __init__(self):
        self.values = {}
        self.ttls = {}

    async def get(self, key):
        return self.values.get(key)

    async def set(self, key, value, ttl=None):
        self.values[key] = value
        self.ttls[key] = ttl
        return True

    async def delete(self, key):
        self.values.pop(key, None)
        return True


@dataclass
class Fleet:
    bus: Bus
    route: Route
    other_bus: Bus
    other_route: Route
    rider: User
    other_rider: User
    admin: User

    def request(self, seat_numbers, **overrides) -> ReservationRequest:
        fields = {
            "user_id": self.rider.id,
            "bus_id": self.bus.id,
            "route_id": self.route.id,
            "travel_date": TRAVEL_DATE.isoformat(),
            "seat_numbers": seat_numbers,
        }
        fields.update(overrides)
        return ReservationRequest(**fields)


@pytest.fixture
async def engine(tmp_path):
    # File database so concurrent sessions use separate connections
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'gobus_test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def fleet(session_factory) -> Fleet:
    async with session_factory() as session:
        bus = Bus(bus_name="Coastal Express", bus_number="GB-100", capacity=40)
        other_bus = Bus(bus_name="Hill Runner", bus_number="GB-200", capacity=20)
        session.add_all([bus, other_bus])
        await session.flush()

        route = Route(
            route_name="Harbour - Airport",
            start_location="Harbour",
            end_location="Airport",
            distance=32.5,
            bus_id=bus.id,
        )
        other_route = Route(
            route_name="Old Town - Summit",
            start_location="Old Town",
            end_location="Summit",
            distance=18.0,
            bus_id=other_bus.id,
        )
        rider = User(email="rider@example.com", username="rider")
        other_rider = User(email="other@example.com", username="other")
        admin = User(email="admin@example.com", username="admin", is_admin=True)
        session.add_all([route, other_route, rider, other_rider, admin])
        await session.commit()

    return Fleet(
        bus=bus,
        route=route,
        other_bus=other_bus,
        other_route=other_route,
        rider=rider,
        other_rider=other_rider,
        admin=admin,
    )


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def fast_retry() -> RetryConfig:
    return RetryConfig(max_attempts=10, base_delay=0.01, max_delay=0.05)


@pytest.fixture
def make_orchestrator(session_factory, notifier, fast_retry):
    def _make(**kwargs) -> ReservationOrchestrator:
        kwargs.setdefault("notifier", notifier)
        kwargs.setdefault("retry_config", fast_retry)
        return ReservationOrchestrator(session_factory, **kwargs)

    return _make


@pytest.fixture
def booked_seats(session_factory):
    async def _booked(bus_id, travel_date=TRAVEL_DATE) -> List[int]:
        async with session_factory() as session:
            snapshot = await BookingService(session).get_availability(bus_id, travel_date)
        return snapshot["booked_seats"]

    return _booked
