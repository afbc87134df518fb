"""
Booking model for seat reservations on a bus and travel date.
"""

import enum
import uuid
from datetime import date
from decimal import Decimal
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import JSON, CheckConstraint, Date, Enum, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .user import User
    from .bus import Bus
    from .route import Route
    from .seat_reservation import SeatReservation


class BookingStatus(enum.Enum):
    """Enumeration for booking lifecycle status."""
    ACTIVE = "active"
    CANCELLED = "cancelled"


class PaymentStatus(enum.Enum):
    """Enumeration for the payment sub-state of a booking."""
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


class Booking(Base):
    """Booking of one or more seats on a bus for a calendar day."""

    __tablename__ = "bookings"

    reference: Mapped[str] = mapped_column(String(32), nullable=False)

    # Foreign key relationships
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    bus_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("buses.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    route_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("routes.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Booking details
    travel_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    seat_numbers: Mapped[List[int]] = mapped_column(JSON, nullable=False)
    total_price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal('0.00')
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus, values_callable=lambda e: [m.value for m in e]),
        default=BookingStatus.ACTIVE,
        nullable=False,
        index=True
    )

    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, values_callable=lambda e: [m.value for m in e]),
        default=PaymentStatus.PENDING,
        nullable=False,
        index=True
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="bookings")
    bus: Mapped["Bus"] = relationship("Bus", back_populates="bookings")
    route: Mapped["Route"] = relationship("Route")

    seat_reservations: Mapped[List["SeatReservation"]] = relationship(
        "SeatReservation",
        back_populates="booking",
        cascade="all, delete-orphan",
        lazy="selectin"
    )

    # Constraints
    __table_args__ = (
        Index("uq_bookings_reference", "reference", unique=True),
        Index("ix_bookings_bus_date_status", "bus_id", "travel_date", "status"),
        CheckConstraint("total_price >= 0", name="ck_bookings_total_price_non_negative"),
    )

    @property
    def is_active(self) -> bool:
        """Check if the booking still holds its seats."""
        return self.status == BookingStatus.ACTIVE

    @property
    def is_cancelled(self) -> bool:
        return self.status == BookingStatus.CANCELLED

    def __repr__(self) -> str:
        """String representation of the booking."""
        return (
            f"<Booking(id={self.id}, reference='{self.reference}', bus_id={self.bus_id}, "
            f"travel_date={self.travel_date}, seats={self.seat_numbers}, status={self.status.value})>"
        )
