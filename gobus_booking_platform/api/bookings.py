"""
FastAPI routes for seat reservation and booking management.
"""

import logging
from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..database import get_db, get_session_factory
from ..models.booking import Booking, BookingStatus, PaymentStatus
from ..models.user import User
from ..schemas.booking import (
    AvailabilityResponse,
    BookingCreateRequest,
    BookingListResponse,
    BookingResponse,
    BookingStateResponse,
    CancelBookingResponse,
    CreateBookingResponse,
)
from ..schemas.common import ErrorResponse
from ..services.booking_service import BookingService
from ..services.reservation_service import ReservationOrchestrator, ReservationRequest
from ..utils.dependencies import get_current_user, require_admin

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/bookings", tags=["bookings"])


def get_reservation_orchestrator(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> ReservationOrchestrator:
    """FastAPI dependency building the reservation orchestrator."""
    return ReservationOrchestrator(session_factory)


def _booking_response(booking: Booking) -> BookingResponse:
    return BookingResponse.model_validate(booking)


@router.post(
    "/",
    response_model=CreateBookingResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        409: {"model": ErrorResponse, "description": "Seats already booked"},
        422: {"model": ErrorResponse, "description": "Invalid seats or travel date"},
        503: {"model": ErrorResponse, "description": "Temporary failure, retry later"},
    },
)
async def create_booking(
    request: BookingCreateRequest,
    current_user: User = Depends(get_current_user),
    orchestrator: ReservationOrchestrator = Depends(get_reservation_orchestrator),
):
    """
    Reserve seats on a bus for a travel date.

    The booking is committed before the confirmation email is queued, and a
    seat already held by an active booking is never granted twice.
    """
    booking = await orchestrator.reserve(
        ReservationRequest(
            user_id=current_user.id,
            bus_id=request.bus_id,
            route_id=request.route_id,
            travel_date=request.travel_date,
            seat_numbers=request.seat_numbers,
            notes=request.notes,
        )
    )
    return CreateBookingResponse(booking=_booking_response(booking))


@router.get("/availability", response_model=AvailabilityResponse)
async def get_availability(
    bus_id: UUID,
    travel_date: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Seats held and seats free on a bus for a travel date."""
    booking_service = BookingService(db)
    return AvailabilityResponse(**await booking_service.get_availability(bus_id, travel_date))


@router.get("/mine", response_model=BookingListResponse)
async def get_my_bookings(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Bookings of the current rider, newest first."""
    booking_service = BookingService(db)
    bookings = await booking_service.list_user_bookings(current_user.id)
    return BookingListResponse(
        bookings=[_booking_response(booking) for booking in bookings],
        total=len(bookings),
        page=1,
        limit=len(bookings),
    )


@router.get("/", response_model=BookingListResponse)
async def list_bookings(
    user_id: Optional[UUID] = None,
    bus_id: Optional[UUID] = None,
    route_id: Optional[UUID] = None,
    booking_status: Optional[BookingStatus] = Query(None, alias="status"),
    payment_status: Optional[PaymentStatus] = None,
    travel_date: Optional[date] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    List bookings across all riders.

    Admin only. Filters combine with AND.
    """
    booking_service = BookingService(db)
    bookings, total = await booking_service.list_bookings(
        user_id=user_id,
        bus_id=bus_id,
        route_id=route_id,
        status=booking_status,
        payment_status=payment_status,
        travel_date=travel_date,
        limit=limit,
        offset=(page - 1) * limit,
    )
    return BookingListResponse(
        bookings=[_booking_response(booking) for booking in bookings],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get a booking owned by the current rider, or any booking for admins."""
    booking_service = BookingService(db)
    booking = await booking_service.get_booking_for(booking_id, current_user)
    return _booking_response(booking)


@router.patch("/{booking_id}/cancel", response_model=CancelBookingResponse)
async def cancel_booking(
    booking_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Cancel a booking and release its seats.

    Cancelling twice is harmless and reports the booking as already cancelled.
    """
    booking_service = BookingService(db)
    booking, changed = await booking_service.cancel_booking(booking_id, current_user)
    return CancelBookingResponse(
        booking=_booking_response(booking),
        message="Booking cancelled successfully" if changed else "Already cancelled",
    )


@router.patch("/{booking_id}/paid", response_model=BookingStateResponse)
async def mark_booking_paid(
    booking_id: UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Record payment for a booking. Admin only."""
    booking_service = BookingService(db)
    booking = await booking_service.mark_paid(booking_id)
    return BookingStateResponse(booking=_booking_response(booking), message="Booking marked as paid")


@router.patch("/{booking_id}/refunded", response_model=BookingStateResponse)
async def mark_booking_refunded(
    booking_id: UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Record a refund for a paid booking. Admin only."""
    booking_service = BookingService(db)
    booking = await booking_service.mark_refunded(booking_id)
    return BookingStateResponse(booking=_booking_response(booking), message="Booking marked as refunded")
