"""
Seat availability computation for a bus on a travel date.
"""

import logging
from datetime import date
from typing import Set
from uuid import UUID

from sqlalchemy import select

from ..models.booking import Booking, BookingStatus
from ..models.seat_reservation import SeatReservation
from ..utils.transaction import TransactionContext

logger = logging.getLogger(__name__)


class AvailabilityChecker:
    """Computes the availability snapshot: seats held by active bookings."""

    async def held_seats(self, ctx: TransactionContext, bus_id: UUID, travel_date: date) -> Set[int]:
        """
        Get the seats held by active bookings for a bus and travel date.

        Runs on the context's session so the read belongs to the same
        transaction as any write that follows it.

        Args:
            ctx: Transaction context of the current reservation attempt
            bus_id: ID of the bus
            travel_date: Calendar day of travel

        Returns:
            Set of held seat numbers
        """
        result = await ctx.session.execute(
            select(SeatReservation.seat_number)
            .join(Booking, Booking.id == SeatReservation.booking_id)
            .where(
                SeatReservation.bus_id == bus_id,
                SeatReservation.travel_date == travel_date,
                Booking.status == BookingStatus.ACTIVE,
            )
        )
        held = set(result.scalars().all())
        logger.debug(f"Bus {bus_id} on {travel_date} has {len(held)} held seats")
        return held
