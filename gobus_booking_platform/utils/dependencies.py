"""
Request dependencies resolving the caller from a bearer access token.
"""

from typing import Optional
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.user import User
from .auth import verify_token
from .exceptions import AuthenticationError, AuthorizationError

# Missing credentials go through the platform error format rather than FastAPI's 403
bearer_scheme = HTTPBearer(auto_error=False)


def _user_id_from(credentials: Optional[HTTPAuthorizationCredentials]) -> UUID:
    if credentials is None:
        raise AuthenticationError("Missing bearer token")

    token_data = verify_token(credentials.credentials, expected_type="access")
    if token_data is None or not token_data.user_id:
        raise AuthenticationError("Could not validate credentials")

    try:
        return UUID(token_data.user_id)
    except ValueError:
        raise AuthenticationError("Could not validate credentials")


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Resolve the authenticated rider.

    Raises:
        AuthenticationError: Missing, invalid or expired token, or an unknown or inactive user
    """
    user = await db.get(User, _user_id_from(credentials))
    if user is None or not user.is_active:
        raise AuthenticationError("Could not validate credentials")
    return user


async def require_admin(current_user: User = Depends(get_current_user)) -> User:
    """Only let administrators through."""
    if not current_user.is_admin:
        raise AuthorizationError("Administrator access required", required_permission="admin")
    return current_user
