"""Versioned HTTP routes."""

from fastapi import APIRouter

from . import auth, bookings

api_router = APIRouter(prefix="/api/v1")
for module in (auth, bookings):
    api_router.include_router(module.router)

__all__ = ["api_router"]
