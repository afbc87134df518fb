"""
Pricing policies for seat reservations.
"""

from decimal import Decimal
from typing import Protocol

from ..config import get_settings
from ..models.bus import Bus
from ..models.route import Route


class PricingPolicy(Protocol):
    """Pure function of (bus, route, seat count) returning the total price."""

    def __call__(self, bus: Bus, route: Route, seat_count: int) -> Decimal: ...


class FlatRatePricing:
    """Charge the same rate for every seat."""

    def __init__(self, rate_per_seat: Decimal):
        if rate_per_seat < 0:
            raise ValueError("rate_per_seat must be non-negative")
        self.rate_per_seat = Decimal(rate_per_seat)

    def __call__(self, bus: Bus, route: Route, seat_count: int) -> Decimal:
        return (self.rate_per_seat * seat_count).quantize(Decimal("0.01"))


def default_pricing() -> FlatRatePricing:
    """Flat per-seat pricing using the configured rate."""
    return FlatRatePricing(get_settings().price_per_seat)
