"""
Booking service for lookups, listings, availability and lifecycle operations.
"""

import logging
from datetime import date
from typing import Any, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select, func, desc
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.booking import Booking, BookingStatus, PaymentStatus
from ..models.bus import Bus
from ..models.user import User
from ..utils.exceptions import (
    AuthorizationError,
    BookingNotFoundError,
    BusNotFoundError,
)
from ..utils.seats import normalize_travel_date
from ..utils.transaction import TransactionContext
from .availability_service import AvailabilityChecker
from .booking_lifecycle import BookingLifecycleManager

logger = logging.getLogger(__name__)


class BookingService:
    """Service for reading bookings and driving their lifecycle."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.lifecycle = BookingLifecycleManager(session)
        self.availability = AvailabilityChecker()

    async def get_booking(self, booking_id: UUID) -> Booking:
        """
        Get a booking by ID.

        Raises:
            BookingNotFoundError: When booking is not found
        """
        booking = await self.session.get(Booking, booking_id)
        if booking is None:
            raise BookingNotFoundError(str(booking_id))
        return booking

    async def get_booking_for(self, booking_id: UUID, actor: User) -> Booking:
        """
        Get a booking visible to the actor: its owner or an administrator.

        Raises:
            BookingNotFoundError: When booking is not found
            AuthorizationError: When the actor is neither owner nor admin
        """
        booking = await self.get_booking(booking_id)
        if booking.user_id != actor.id and not actor.is_admin:
            raise AuthorizationError("Forbidden")
        return booking

    async def list_user_bookings(self, user_id: UUID) -> List[Booking]:
        """Get all bookings of a rider, newest first."""
        result = await self.session.execute(
            select(Booking)
            .where(Booking.user_id == user_id)
            .order_by(desc(Booking.created_at))
        )
        return list(result.scalars().all())

    async def list_bookings(
        self,
        user_id: Optional[UUID] = None,
        bus_id: Optional[UUID] = None,
        route_id: Optional[UUID] = None,
        status: Optional[BookingStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        travel_date: Optional[Any] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[Booking], int]:
        """
        Filter bookings for administrators.

        Returns:
            Tuple of (bookings page, total matching count)
        """
        conditions = []
        if user_id:
            conditions.append(Booking.user_id == user_id)
        if bus_id:
            conditions.append(Booking.bus_id == bus_id)
        if route_id:
            conditions.append(Booking.route_id == route_id)
        if status:
            conditions.append(Booking.status == status)
        if payment_status:
            conditions.append(Booking.payment_status == payment_status)
        if travel_date:
            conditions.append(Booking.travel_date == normalize_travel_date(travel_date))

        total = await self.session.scalar(
            select(func.count()).select_from(Booking).where(*conditions)
        )

        result = await self.session.execute(
            select(Booking)
            .where(*conditions)
            .order_by(desc(Booking.created_at))
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    async def get_availability(self, bus_id: UUID, travel_date: Any) -> dict:
        """
        Compute a fresh availability snapshot for a bus and travel date.

        Raises:
            BusNotFoundError: When the bus does not exist
            ValidationError: When the travel date is invalid
        """
        day: date = normalize_travel_date(travel_date)
        bus = await self.session.get(Bus, bus_id)
        if bus is None:
            raise BusNotFoundError(str(bus_id))

        held = await self.availability.held_seats(
            TransactionContext(self.session, transactional=False), bus.id, day
        )
        return {
            "bus_id": bus.id,
            "travel_date": day,
            "capacity": bus.capacity,
            "booked_seats": sorted(held),
            "available_seats": [seat for seat in range(1, bus.capacity + 1) if seat not in held],
        }

    async def cancel_booking(self, booking_id: UUID, actor: User) -> Tuple[Booking, bool]:
        """
        Cancel a booking on behalf of its owner or an administrator.

        Returns:
            Tuple of (booking, whether this call changed its status)
        """
        booking = await self.get_booking_for(booking_id, actor)
        changed = await self.lifecycle.cancel(booking)
        return booking, changed

    async def mark_paid(self, booking_id: UUID) -> Booking:
        """Mark a booking as paid."""
        booking = await self.get_booking(booking_id)
        return await self.lifecycle.mark_paid(booking)

    async def mark_refunded(self, booking_id: UUID) -> Booking:
        """Mark a paid booking as refunded."""
        booking = await self.get_booking(booking_id)
        return await self.lifecycle.mark_refunded(booking)
