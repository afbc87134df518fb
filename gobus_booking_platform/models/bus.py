"""
Bus model describing a vehicle and its seat capacity.
"""

from typing import List, TYPE_CHECKING

from sqlalchemy import CheckConstraint, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .route import Route
    from .booking import Booking


class Bus(Base):
    """Bus with numbered seats from 1 to ``capacity``."""

    __tablename__ = "buses"

    bus_name: Mapped[str] = mapped_column(String(255), nullable=False)
    bus_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Relationships
    routes: Mapped[List["Route"]] = relationship("Route", back_populates="bus")
    bookings: Mapped[List["Booking"]] = relationship("Booking", back_populates="bus")

    # Constraints
    __table_args__ = (
        CheckConstraint("capacity > 0", name="ck_buses_capacity_positive"),
    )

    @property
    def label(self) -> str:
        """Human-readable name used in notifications."""
        return self.bus_name or self.bus_number or str(self.id)

    def __repr__(self) -> str:
        """String representation of the bus."""
        return f"<Bus(id={self.id}, number='{self.bus_number}', capacity={self.capacity})>"
