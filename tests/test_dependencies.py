import uuid

import pytest
from fastapi.security import HTTPAuthorizationCredentials

from gobus_booking_platform.utils.auth import create_access_token, create_refresh_token
from gobus_booking_platform.utils.dependencies import get_current_user, require_admin
from gobus_booking_platform.utils.exceptions import AuthenticationError, AuthorizationError


def bearer(token):
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


async def test_access_token_resolves_user(session_factory, fleet):
    token = create_access_token({"sub": str(fleet.rider.id)})

    async with session_factory() as session:
        user = await get_current_user(credentials=bearer(token), db=session)

    assert user.id == fleet.rider.id


@pytest.mark.parametrize(
    "make_token",
    [
        lambda user_id: None,
        lambda user_id: "not-a-jwt",
        lambda user_id: create_refresh_token({"sub": str(user_id)}),
        lambda user_id: create_access_token({"sub": "not-a-uuid"}),
        lambda user_id: create_access_token({"sub": str(uuid.uuid4())}),
    ],
    ids=["missing", "garbage", "refresh-token", "bad-subject", "unknown-user"],
)
async def test_unusable_credentials_are_rejected(session_factory, fleet, make_token):
    token = make_token(fleet.rider.id)
    credentials = bearer(token) if token else None

    async with session_factory() as session:
        with pytest.raises(AuthenticationError):
            await get_current_user(credentials=credentials, db=session)


async def test_inactive_user_is_rejected(session_factory, fleet):
    async with session_factory() as session:
        rider = await session.get(type(fleet.rider), fleet.rider.id)
        rider.is_active = False
        await session.commit()

    token = create_access_token({"sub": str(fleet.rider.id)})
    async with session_factory() as session:
        with pytest.raises(AuthenticationError):
            await get_current_user(credentials=bearer(token), db=session)


async def test_require_admin(fleet):
    assert await require_admin(current_user=fleet.admin) is fleet.admin

    with pytest.raises(AuthorizationError) as exc_info:
        await require_admin(current_user=fleet.rider)
    assert exc_info.value.details == {"required_permission": "admin"}
