"""
Refresh token tracking backed by Redis.
"""

import hashlib
import logging
from typing import Optional
from uuid import UUID

from ..cache import RedisStore, get_cache, refresh_token_key
from ..config import get_settings
from ..utils.auth import TokenPair, create_access_token, create_refresh_token, verify_token
from ..utils.exceptions import AuthenticationError, TransientInfrastructureError

logger = logging.getLogger(__name__)


def hash_token(token: str) -> str:
    """Hash a raw token so it is never stored in clear."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class RefreshTokenStore:
    """
    Tracks issued refresh tokens by hash, each expiring with the token itself.

    A token is usable only while its entry exists. Read failures count as
    unknown tokens.
    """

    def __init__(self, cache: Optional[RedisStore] = None, ttl_seconds: Optional[int] = None):
        self.cache = cache or get_cache()
        self.ttl_seconds = ttl_seconds or get_settings().REFRESH_TOKEN_EXPIRE_DAYS * 24 * 3600

    async def remember(self, token: str, user_id: UUID) -> None:
        """
        Record a freshly issued refresh token.

        Raises:
            TransientInfrastructureError: When the store rejects the write
        """
        key = refresh_token_key(hash_token(token))
        stored = await self.cache.set(key, {"user_id": str(user_id)}, ttl=self.ttl_seconds)
        if not stored:
            raise TransientInfrastructureError("Token store unavailable")

    async def is_active(self, token: str) -> bool:
        """Check whether a refresh token is still tracked."""
        key = refresh_token_key(hash_token(token))
        return await self.cache.get(key) is not None

    async def revoke(self, token: str) -> None:
        """Forget a refresh token. Unknown tokens are ignored."""
        await self.cache.delete(refresh_token_key(hash_token(token)))

    async def issue(self, user_id: UUID) -> TokenPair:
        """Issue an access/refresh token pair and track the refresh token."""
        refresh_token = create_refresh_token({"sub": str(user_id)})
        await self.remember(refresh_token, user_id)
        return TokenPair(
            access_token=create_access_token({"sub": str(user_id)}),
            refresh_token=refresh_token,
            expires_in=get_settings().ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        )

    async def refresh(self, refresh_token: str) -> str:
        """
        Exchange a live refresh token for a new access token.

        Raises:
            AuthenticationError: When the token is invalid, expired or revoked
        """
        token_data = verify_token(refresh_token, expected_type="refresh")
        if token_data is None or not await self.is_active(refresh_token):
            logger.info("Rejected refresh token")
            raise AuthenticationError("Invalid refresh token")
        return create_access_token({"sub": token_data.user_id})


def get_refresh_token_store() -> RefreshTokenStore:
    """FastAPI dependency for the refresh token store."""
    return RefreshTokenStore()
