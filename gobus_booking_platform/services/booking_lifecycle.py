"""
Booking lifecycle state transitions.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from ..models.booking import Booking, BookingStatus, PaymentStatus
from ..utils.exceptions import InvalidBookingStateError
from ..utils.logging_config import log_business_event

logger = logging.getLogger(__name__)


class BookingLifecycleManager:
    """
    Owns the booking state machine.

    Status moves from active to cancelled and stays there. Payment moves
    pending -> paid -> refunded independently of status. Authorization is the
    caller's responsibility.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def cancel(self, booking: Booking) -> bool:
        """
        Cancel a booking.

        Cancelling an already cancelled booking changes nothing.

        Returns:
            True if the booking was cancelled by this call, False if it already was
        """
        if booking.status == BookingStatus.CANCELLED:
            logger.info(f"Booking {booking.reference} already cancelled")
            return False

        booking.status = BookingStatus.CANCELLED
        for seat_reservation in booking.seat_reservations:
            seat_reservation.is_active = False
        await self.session.commit()

        logger.info(f"Booking {booking.reference} cancelled")
        log_business_event(
            "booking_cancelled",
            {"booking_id": str(booking.id), "reference": booking.reference, "seats": booking.seat_numbers},
            user_id=str(booking.user_id),
        )
        return True

    async def mark_paid(self, booking: Booking) -> Booking:
        """Set the payment sub-state to paid, whatever the booking status."""
        booking.payment_status = PaymentStatus.PAID
        await self.session.commit()

        logger.info(f"Booking {booking.reference} marked paid")
        log_business_event(
            "booking_paid",
            {"booking_id": str(booking.id), "reference": booking.reference, "status": booking.status.value},
            user_id=str(booking.user_id),
        )
        return booking

    async def mark_refunded(self, booking: Booking) -> Booking:
        """
        Set the payment sub-state to refunded.

        Raises:
            InvalidBookingStateError: When the booking has not been paid
        """
        if booking.payment_status == PaymentStatus.REFUNDED:
            return booking
        if booking.payment_status != PaymentStatus.PAID:
            raise InvalidBookingStateError(
                str(booking.id),
                booking.payment_status.value,
                PaymentStatus.PAID.value,
            )

        booking.payment_status = PaymentStatus.REFUNDED
        await self.session.commit()

        logger.info(f"Booking {booking.reference} refunded")
        log_business_event(
            "booking_refunded",
            {"booking_id": str(booking.id), "reference": booking.reference, "total_price": str(booking.total_price)},
            user_id=str(booking.user_id),
        )
        return booking
