"""Business logic services for the GoBus Booking Platform."""

from .booking_service import BookingService
from .reservation_service import ReservationOrchestrator, ReservationRequest
from .token_service import RefreshTokenStore

__all__ = ["BookingService", "ReservationOrchestrator", "ReservationRequest", "RefreshTokenStore"]
