from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

from gobus_booking_platform.database import get_db
from gobus_booking_platform.main import app
from gobus_booking_platform.utils.auth import create_access_token


@pytest.fixture
async def anonymous_client(session_factory, fleet):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def token_store_pinging(result):
    store = MagicMock()
    store.ping = AsyncMock(return_value=result)
    return store


@pytest.mark.parametrize(
    "database_up, redis_up, expected_status",
    [(True, True, 200), (True, False, 503), (False, True, 503)],
)
async def test_health_reports_dependencies(anonymous_client, database_up, redis_up, expected_status):
    with patch("gobus_booking_platform.main.ping_database", AsyncMock(return_value=database_up)), \
            patch("gobus_booking_platform.main.get_cache", return_value=token_store_pinging(redis_up)):
        response = await anonymous_client.get("/health")

    assert response.status_code == expected_status
    assert response.json()["checks"] == {"database": database_up, "token_store": redis_up}


async def test_missing_token_is_401_in_error_envelope(anonymous_client):
    response = await anonymous_client.get("/api/v1/bookings/mine")

    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"
    assert response.json()["error"]["error_code"] == "UNAUTHORIZED"


async def test_bearer_token_reaches_route(anonymous_client, fleet):
    token = create_access_token({"sub": str(fleet.rider.id)})

    response = await anonymous_client.get(
        "/api/v1/bookings/mine", headers={"Authorization": f"Bearer {token}"}
    )

    assert response.status_code == 200
    assert response.json()["bookings"] == []


async def test_request_id_is_echoed(anonymous_client):
    response = await anonymous_client.get("/", headers={"X-Request-ID": "trace-123"})

    assert response.headers["X-Request-ID"] == "trace-123"
    assert "X-Process-Time" in response.headers
