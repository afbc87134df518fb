"""
Route model linking a named journey to the bus operating it.
"""

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, Float, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .bus import Bus


class Route(Base):
    """Route operated by exactly one bus."""

    __tablename__ = "routes"

    route_name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    start_location: Mapped[str] = mapped_column(String(255), nullable=False)
    end_location: Mapped[str] = mapped_column(String(255), nullable=False)
    distance: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    bus_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("buses.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Relationships
    bus: Mapped["Bus"] = relationship("Bus", back_populates="routes")

    # Constraints
    __table_args__ = (
        CheckConstraint("distance >= 0", name="ck_routes_distance_non_negative"),
    )

    def belongs_to(self, bus_id: uuid.UUID) -> bool:
        """Check whether the route is operated by the given bus."""
        return self.bus_id == bus_id

    @property
    def label(self) -> str:
        """Human-readable name used in notifications."""
        return self.route_name or str(self.id)

    def __repr__(self) -> str:
        """String representation of the route."""
        return f"<Route(id={self.id}, name='{self.route_name}', bus_id={self.bus_id})>"
