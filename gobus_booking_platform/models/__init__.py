"""
Database models for the GoBus booking platform.
"""

from .base import Base
from .user import User
from .bus import Bus
from .route import Route
from .booking import Booking, BookingStatus, PaymentStatus
from .seat_reservation import SeatReservation, ACTIVE_SEAT_INDEX

__all__ = [
    "Base",
    "User",
    "Bus",
    "Route",
    "Booking",
    "BookingStatus",
    "PaymentStatus",
    "SeatReservation",
    "ACTIVE_SEAT_INDEX",
]
