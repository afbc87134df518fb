"""
Pydantic schemas for booking-related API requests and responses.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.booking import BookingStatus, PaymentStatus


class BookingCreateRequest(BaseModel):
    """Schema for creating a new booking."""

    bus_id: UUID = Field(..., description="ID of the bus to book")
    route_id: UUID = Field(..., description="ID of the route served by the bus")
    travel_date: Any = Field(..., description="Travel date, ISO-8601 date or datetime")
    seat_numbers: List[Any] = Field(..., description="Requested seat numbers, 1-based")
    notes: Optional[str] = Field(None, max_length=1000, description="Optional rider notes")


class BookingResponse(BaseModel):
    """Schema for booking responses."""

    id: UUID
    reference: str
    user_id: UUID
    bus_id: UUID
    route_id: UUID
    travel_date: date
    seat_numbers: List[int]
    total_price: Decimal
    status: BookingStatus
    payment_status: PaymentStatus
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BookingListResponse(BaseModel):
    """Schema for booking list responses."""

    bookings: List[BookingResponse]
    total: int
    page: int
    limit: int


class AvailabilityResponse(BaseModel):
    """Schema for a seat availability snapshot."""

    bus_id: UUID
    travel_date: date
    capacity: int
    booked_seats: List[int]
    available_seats: List[int]


class CreateBookingResponse(BaseModel):
    """Response for successful booking creation."""

    booking: BookingResponse
    message: str = "Booking created successfully"


class CancelBookingResponse(BaseModel):
    """Response for booking cancellation."""

    booking: BookingResponse
    message: str = "Booking cancelled successfully"


class BookingStateResponse(BaseModel):
    """Response for payment state changes."""

    booking: BookingResponse
    message: str
