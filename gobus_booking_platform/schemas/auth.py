"""
Authentication-related Pydantic schemas.
"""

from pydantic import BaseModel, Field


class RefreshTokenRequest(BaseModel):
    """Schema carrying a refresh token."""
    refresh_token: str = Field(..., min_length=1)


class AccessTokenResponse(BaseModel):
    """Schema for a newly issued access token."""
    access_token: str
    token_type: str = "bearer"
    expires_in: int
