"""
Authentication API endpoints for refresh token handling.
"""

from typing import Any

from fastapi import APIRouter, Depends, status

from ..config import settings
from ..schemas.auth import AccessTokenResponse, RefreshTokenRequest
from ..schemas.common import SuccessResponse
from ..services.token_service import RefreshTokenStore, get_refresh_token_store


router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post("/refresh", response_model=AccessTokenResponse)
async def refresh_access_token(
    payload: RefreshTokenRequest,
    token_store: RefreshTokenStore = Depends(get_refresh_token_store)
) -> Any:
    """
    Exchange a live refresh token for a new access token.

    Raises:
        AuthenticationError: If the refresh token is invalid, expired or revoked
    """
    access_token = await token_store.refresh(payload.refresh_token)
    return AccessTokenResponse(
        access_token=access_token,
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


@router.post("/logout", response_model=SuccessResponse, status_code=status.HTTP_200_OK)
async def logout(
    payload: RefreshTokenRequest,
    token_store: RefreshTokenStore = Depends(get_refresh_token_store)
) -> Any:
    """Revoke a refresh token. Unknown tokens are accepted silently."""
    await token_store.revoke(payload.refresh_token)
    return SuccessResponse(message="Logged out")
