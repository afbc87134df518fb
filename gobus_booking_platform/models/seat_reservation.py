"""
SeatReservation model holding one seat of a booking.
"""

import uuid
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, Date, ForeignKey, Index, Integer, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .booking import Booking

ACTIVE_SEAT_INDEX = "uq_seat_reservations_active"


class SeatReservation(Base):
    """One seat of a booking, denormalised with the bus and travel date it applies to."""

    __tablename__ = "seat_reservations"

    booking_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    bus_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("buses.id", ondelete="CASCADE"),
        nullable=False
    )

    travel_date: Mapped[date] = mapped_column(Date, nullable=False)
    seat_number: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Relationships
    booking: Mapped["Booking"] = relationship("Booking", back_populates="seat_reservations")

    # Constraints
    __table_args__ = (
        # At most one active holder per seat on a bus and day
        Index(
            ACTIVE_SEAT_INDEX,
            "bus_id", "travel_date", "seat_number",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
        CheckConstraint("seat_number > 0", name="ck_seat_reservations_seat_positive"),
    )

    def __repr__(self) -> str:
        """String representation of the seat reservation."""
        return (
            f"<SeatReservation(booking_id={self.booking_id}, bus_id={self.bus_id}, "
            f"travel_date={self.travel_date}, seat={self.seat_number}, active={self.is_active})>"
        )
