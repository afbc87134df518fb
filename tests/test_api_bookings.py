from contextlib import asynccontextmanager
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient

from gobus_booking_platform.api.bookings import get_reservation_orchestrator
from gobus_booking_platform.database import get_db, get_session_factory
from gobus_booking_platform.main import app
from gobus_booking_platform.services.token_service import RefreshTokenStore, get_refresh_token_store
from gobus_booking_platform.utils.dependencies import get_current_user
from gobus_booking_platform.utils.exceptions import TransientInfrastructureError
from gobus_booking_platform.utils.retry import RetryConfig

from conftest import InMemoryCache


@asynccontextmanager
async def always_contended(session):
    raise TransientInfrastructureError("database is locked")
    yield  # pragma: no cover


@pytest.fixture
def acting(fleet):
    """Mutable holder for the authenticated user of the next request."""
    return {"user": fleet.rider}


@pytest.fixture
def token_store():
    return RefreshTokenStore(cache=InMemoryCache())


@pytest.fixture
async def client(session_factory, make_orchestrator, acting, token_store):
    async def override_get_db():
        async with session_factory() as session:
            yield session
            await session.commit()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_current_user] = lambda: acting["user"]
    app.dependency_overrides[get_reservation_orchestrator] = lambda: make_orchestrator()
    app.dependency_overrides[get_refresh_token_store] = lambda: token_store

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def booking_body(fleet, seats, **overrides):
    body = {
        "bus_id": str(fleet.bus.id),
        "route_id": str(fleet.route.id),
        "travel_date": "2025-03-01",
        "seat_numbers": seats,
    }
    body.update(overrides)
    return body


async def test_create_booking(client, fleet):
    response = await client.post("/api/v1/bookings/", json=booking_body(fleet, [6, 5]))

    assert response.status_code == 201
    booking = response.json()["booking"]
    assert booking["seat_numbers"] == [5, 6]
    assert booking["status"] == "active"
    assert booking["payment_status"] == "pending"
    assert booking["travel_date"] == "2025-03-01"
    assert booking["user_id"] == str(fleet.rider.id)
    assert Decimal(booking["total_price"]) == Decimal("20.00")
    assert booking["reference"].startswith("BK-")
    assert "X-Request-ID" in response.headers


async def test_seat_conflict_is_409_with_seats(client, fleet, acting):
    await client.post("/api/v1/bookings/", json=booking_body(fleet, [5, 6]))

    acting["user"] = fleet.other_rider
    response = await client.post("/api/v1/bookings/", json=booking_body(fleet, [6, 7]))

    assert response.status_code == 409
    error = response.json()["error"]
    assert error["error_code"] == "SEAT_CONFLICT"
    assert error["details"]["seats"] == [6]


@pytest.mark.parametrize(
    "overrides",
    [
        {"seat_numbers": ["x", -1]},
        {"seat_numbers": [50]},
        {"travel_date": "not-a-date"},
        {"seat_numbers": "5"},
    ],
)
async def test_invalid_requests_are_422(client, fleet, overrides):
    response = await client.post("/api/v1/bookings/", json=booking_body(fleet, [1], **overrides))

    assert response.status_code == 422
    assert response.json()["error"]["error_code"] == "VALIDATION_ERROR"


async def test_route_of_another_bus_is_400(client, fleet):
    response = await client.post(
        "/api/v1/bookings/",
        json=booking_body(fleet, [1], route_id=str(fleet.other_route.id)),
    )

    assert response.status_code == 400
    assert response.json()["error"]["error_code"] == "CONSISTENCY_ERROR"


async def test_exhausted_retries_are_503_with_retry_after(client, fleet, make_orchestrator):
    app.dependency_overrides[get_reservation_orchestrator] = lambda: make_orchestrator(
        begin_transaction=always_contended,
        retry_config=RetryConfig(max_attempts=2, base_delay=0.001, max_delay=0.01),
    )

    response = await client.post("/api/v1/bookings/", json=booking_body(fleet, [1]))

    assert response.status_code == 503
    assert response.headers["Retry-After"] == "1"
    assert response.json()["error"]["error_code"] == "INTERNAL_ERROR"


async def test_availability(client, fleet):
    await client.post("/api/v1/bookings/", json=booking_body(fleet, [1, 2]))

    response = await client.get(
        "/api/v1/bookings/availability",
        params={"bus_id": str(fleet.bus.id), "travel_date": "2025-03-01"},
    )

    assert response.status_code == 200
    snapshot = response.json()
    assert snapshot["capacity"] == 40
    assert snapshot["booked_seats"] == [1, 2]
    assert len(snapshot["available_seats"]) == 38


async def test_my_bookings_and_lookup(client, fleet, acting):
    created = (await client.post("/api/v1/bookings/", json=booking_body(fleet, [3]))).json()["booking"]

    mine = await client.get("/api/v1/bookings/mine")
    assert mine.status_code == 200
    assert [booking["id"] for booking in mine.json()["bookings"]] == [created["id"]]

    own = await client.get(f"/api/v1/bookings/{created['id']}")
    assert own.status_code == 200
    assert own.json()["reference"] == created["reference"]

    acting["user"] = fleet.other_rider
    foreign = await client.get(f"/api/v1/bookings/{created['id']}")
    assert foreign.status_code == 403


async def test_cancel_twice(client, fleet):
    created = (await client.post("/api/v1/bookings/", json=booking_body(fleet, [4]))).json()["booking"]

    first = await client.patch(f"/api/v1/bookings/{created['id']}/cancel")
    second = await client.patch(f"/api/v1/bookings/{created['id']}/cancel")

    assert first.status_code == 200
    assert first.json()["booking"]["status"] == "cancelled"
    assert first.json()["message"] == "Booking cancelled successfully"
    assert second.status_code == 200
    assert second.json()["message"] == "Already cancelled"


async def test_payment_endpoints_are_admin_only(client, fleet, acting):
    created = (await client.post("/api/v1/bookings/", json=booking_body(fleet, [5]))).json()["booking"]

    forbidden = await client.patch(f"/api/v1/bookings/{created['id']}/paid")
    assert forbidden.status_code == 403

    acting["user"] = fleet.admin
    early_refund = await client.patch(f"/api/v1/bookings/{created['id']}/refunded")
    assert early_refund.status_code == 400
    assert early_refund.json()["error"]["error_code"] == "INVALID_BOOKING_STATE"

    paid = await client.patch(f"/api/v1/bookings/{created['id']}/paid")
    assert paid.status_code == 200
    assert paid.json()["booking"]["payment_status"] == "paid"

    refunded = await client.patch(f"/api/v1/bookings/{created['id']}/refunded")
    assert refunded.status_code == 200
    assert refunded.json()["booking"]["payment_status"] == "refunded"


async def test_admin_listing(client, fleet, acting):
    await client.post("/api/v1/bookings/", json=booking_body(fleet, [1]))
    await client.post("/api/v1/bookings/", json=booking_body(fleet, [2]))

    forbidden = await client.get("/api/v1/bookings/")
    assert forbidden.status_code == 403

    acting["user"] = fleet.admin
    response = await client.get(
        "/api/v1/bookings/",
        params={"user_id": str(fleet.rider.id), "status": "active", "page": 2, "limit": 1},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 2
    assert body["page"] == 2
    assert len(body["bookings"]) == 1


async def test_unknown_booking_is_404(client, fleet):
    response = await client.get("/api/v1/bookings/00000000-0000-0000-0000-000000000000")

    assert response.status_code == 404
    assert response.json()["error"]["error_code"] == "NOT_FOUND"


async def test_refresh_and_logout(client, fleet, token_store):
    tokens = await token_store.issue(fleet.rider.id)

    refreshed = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens.refresh_token})
    assert refreshed.status_code == 200
    assert refreshed.json()["token_type"] == "bearer"

    logout = await client.post("/api/v1/auth/logout", json={"refresh_token": tokens.refresh_token})
    assert logout.status_code == 200

    rejected = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens.refresh_token})
    assert rejected.status_code == 401
    assert rejected.json()["error"]["error_code"] == "UNAUTHORIZED"
