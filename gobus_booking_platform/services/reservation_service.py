"""
Seat reservation orchestration with transactional commit and non-transactional fallback.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from functools import partial
from typing import Any, Callable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import get_settings
from ..models.booking import Booking, BookingStatus, PaymentStatus
from ..models.bus import Bus
from ..models.route import Route
from ..models.seat_reservation import SeatReservation
from ..models.user import User
from ..utils.exceptions import (
    BusNotFoundError,
    ConsistencyError,
    GoBusError,
    ReferenceCollisionError,
    RouteNotFoundError,
    SeatCapacityError,
    SeatConflictError,
    ServerError,
    TransactionUnsupportedError,
    TransientInfrastructureError,
    UserNotFoundError,
    ValidationError,
)
from ..utils.logging_config import log_business_event
from ..utils.reference import ReferenceGenerator
from ..utils.retry import RetryConfig, retry_async
from ..utils.seats import normalize_seat_numbers, normalize_travel_date
from ..utils.transaction import (
    TransactionContext,
    classify_storage_error,
    is_active_seat_violation,
    pass_through,
    session_transaction,
)
from .availability_service import AvailabilityChecker
from .notification_service import BookingConfirmation, NotificationDispatcher, get_notification_dispatcher
from .pricing import PricingPolicy, default_pricing

logger = logging.getLogger(__name__)

ConfirmationBuilder = Callable[[], BookingConfirmation]


@dataclass
class ReservationRequest:
    """Inbound reservation request, as received from the API."""

    user_id: UUID
    bus_id: UUID
    route_id: UUID
    travel_date: Any
    seat_numbers: Any
    notes: Optional[str] = None


@dataclass(frozen=True)
class ValidatedReservation:
    """Reservation request after normalization."""

    user_id: UUID
    bus_id: UUID
    route_id: UUID
    travel_date: date
    seat_numbers: List[int] = field(default_factory=list)
    notes: Optional[str] = None


class ReservationOrchestrator:
    """
    Turns a reservation request into a persisted active booking.

    One reservation algorithm (``_reserve``) runs inside a TransactionContext.
    It is first attempted in a real transaction, retrying storage contention
    within a bounded backoff budget. If the deployment reports that
    transactions are unsupported, the same algorithm runs exactly once more in
    a pass-through context. The active-seat unique index backs up the
    availability check in both modes.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        pricing: Optional[PricingPolicy] = None,
        reference_generator: Optional[ReferenceGenerator] = None,
        availability: Optional[AvailabilityChecker] = None,
        notifier: Optional[NotificationDispatcher] = None,
        retry_config: Optional[RetryConfig] = None,
        begin_transaction: Callable = session_transaction,
    ):
        self.session_factory = session_factory
        self.pricing = pricing or default_pricing()
        self.reference_generator = reference_generator or ReferenceGenerator()
        self.availability = availability or AvailabilityChecker()
        self.notifier = notifier or get_notification_dispatcher()
        self.retry_config = retry_config or RetryConfig.from_settings()
        self.begin_transaction = begin_transaction
        settings = get_settings()
        self.reference_max_attempts = settings.reference_max_attempts
        self.max_seats_per_booking = settings.max_seats_per_booking

    async def reserve(self, request: ReservationRequest) -> Booking:
        """
        Reserve seats for a rider on a bus and travel date.

        Args:
            request: Reservation request with an authenticated rider ID

        Returns:
            The created active booking

        Raises:
            ValidationError: Malformed seats or date, or seats above capacity
            NotFoundError: Bus, route or rider does not exist
            ConsistencyError: Route does not belong to the bus
            SeatConflictError: Requested seats are already held
            ServerError: Anything else; ``retryable`` when the retry budget ran out
        """
        reservation = self.validate_request(request)
        logger.info(
            f"Reserving seats {reservation.seat_numbers} on bus {reservation.bus_id} "
            f"for {reservation.travel_date} (user {reservation.user_id})"
        )

        try:
            await self._preflight(reservation)
            try:
                booking, build_confirmation = await self._execute(
                    reservation,
                    self.begin_transaction,
                    retryable=(TransientInfrastructureError,),
                    non_retryable=(TransactionUnsupportedError,),
                )
            except TransactionUnsupportedError:
                logger.warning(
                    "Transactions unsupported by storage deployment, "
                    f"retrying reservation for bus {reservation.bus_id} without a transaction"
                )
                booking, build_confirmation = await self._execute(
                    reservation,
                    pass_through,
                    retryable=(ReferenceCollisionError,),
                    non_retryable=(),
                )
        except TransientInfrastructureError as e:
            logger.error(f"Reservation retry budget exhausted for bus {reservation.bus_id}: {e}")
            raise ServerError("Reservation could not be completed, please retry", retryable=True) from e
        except GoBusError:
            raise
        except Exception as e:
            logger.exception(f"Unexpected error during reservation for bus {reservation.bus_id}: {e}")
            raise ServerError() from e

        logger.info(f"Booking {booking.reference} created for seats {booking.seat_numbers}")
        log_business_event(
            "booking_created",
            {
                "booking_id": str(booking.id),
                "reference": booking.reference,
                "bus_id": str(booking.bus_id),
                "travel_date": booking.travel_date.isoformat(),
                "seats": booking.seat_numbers,
                "total_price": str(booking.total_price),
            },
            user_id=str(booking.user_id),
        )

        # Committed; the notification must not affect the result
        try:
            self.notifier.dispatch_booking_confirmation(build_confirmation())
        except Exception as e:
            logger.warning(f"Failed to dispatch booking confirmation for {booking.reference}: {e}")

        return booking

    def validate_request(self, request: ReservationRequest) -> ValidatedReservation:
        """Normalize seats, date and notes; fails fast with ValidationError."""
        seats = normalize_seat_numbers(request.seat_numbers)
        if len(seats) > self.max_seats_per_booking:
            raise ValidationError(
                f"At most {self.max_seats_per_booking} seats per booking",
                field_errors={"seat_numbers": [f"{len(seats)} seats requested"]},
            )
        travel_date = normalize_travel_date(request.travel_date)
        notes = request.notes.strip() if isinstance(request.notes, str) else None
        return ValidatedReservation(
            user_id=request.user_id,
            bus_id=request.bus_id,
            route_id=request.route_id,
            travel_date=travel_date,
            seat_numbers=seats,
            notes=notes or None,
        )

    async def _preflight(self, reservation: ValidatedReservation) -> None:
        """Reject missing references and invalid seats before any transaction opens."""
        async with self.session_factory() as session:
            bus = await session.get(Bus, reservation.bus_id)
            route = await session.get(Route, reservation.route_id)
            user = await session.get(User, reservation.user_id)
            self._check_references(reservation, bus, route, user)

    @staticmethod
    def _check_references(
        reservation: ValidatedReservation,
        bus: Optional[Bus],
        route: Optional[Route],
        user: Optional[User],
    ) -> None:
        if bus is None:
            raise BusNotFoundError(str(reservation.bus_id))
        if route is None:
            raise RouteNotFoundError(str(reservation.route_id))
        if user is None:
            raise UserNotFoundError(str(reservation.user_id))
        if not route.belongs_to(bus.id):
            raise ConsistencyError(str(route.id), str(bus.id))

        above_capacity = [seat for seat in reservation.seat_numbers if seat > bus.capacity]
        if above_capacity:
            raise SeatCapacityError(above_capacity, bus.capacity)

    async def _execute(
        self,
        reservation: ValidatedReservation,
        begin: Callable,
        retryable: tuple,
        non_retryable: tuple,
    ) -> Tuple[Booking, ConfirmationBuilder]:
        return await retry_async(
            self._attempt,
            reservation,
            begin,
            config=self.retry_config,
            retry_on=retryable,
            give_up_on=non_retryable,
        )

    async def _attempt(
        self,
        reservation: ValidatedReservation,
        begin: Callable,
    ) -> Tuple[Booking, ConfirmationBuilder]:
        """One reservation attempt on a fresh session, with storage errors classified."""
        async with self.session_factory() as session:
            try:
                async with begin(session) as ctx:
                    return await self._reserve(ctx, reservation)
            except IntegrityError as e:
                if is_active_seat_violation(e):
                    clashes = await self._current_clashes(reservation)
                    logger.warning(
                        f"Active seat constraint rejected booking on bus {reservation.bus_id} "
                        f"for {reservation.travel_date}: {clashes}"
                    )
                    if not clashes:
                        # The holder released the seats between the write and the recheck
                        raise TransientInfrastructureError("Seat holder changed during reservation") from e
                    raise SeatConflictError(clashes) from e
                classified = classify_storage_error(e)
                if classified is None:
                    raise
                raise classified from e
            except DBAPIError as e:
                classified = classify_storage_error(e)
                if classified is None:
                    raise
                logger.warning(f"Storage error during reservation attempt: {classified.message}")
                raise classified from e

    async def _reserve(
        self,
        ctx: TransactionContext,
        reservation: ValidatedReservation,
    ) -> Tuple[Booking, ConfirmationBuilder]:
        """Check-then-write reservation algorithm, identical in both modes."""
        session = ctx.session

        result = await session.execute(
            ctx.lock_for_update(select(Bus).where(Bus.id == reservation.bus_id))
        )
        bus = result.scalar_one_or_none()
        route = await session.get(Route, reservation.route_id)
        user = await session.get(User, reservation.user_id)
        self._check_references(reservation, bus, route, user)

        held = await self.availability.held_seats(ctx, bus.id, reservation.travel_date)
        clashes = sorted(set(reservation.seat_numbers) & held)
        if clashes:
            raise SeatConflictError(clashes)

        total_price = self.pricing(bus, route, len(reservation.seat_numbers))
        reference = await self._unique_reference(ctx)

        booking = Booking(
            reference=reference,
            user_id=user.id,
            bus_id=bus.id,
            route_id=route.id,
            travel_date=reservation.travel_date,
            seat_numbers=list(reservation.seat_numbers),
            total_price=total_price,
            notes=reservation.notes,
            status=BookingStatus.ACTIVE,
            payment_status=PaymentStatus.PENDING,
        )
        booking.seat_reservations = [
            SeatReservation(
                bus_id=bus.id,
                travel_date=reservation.travel_date,
                seat_number=seat,
                is_active=True,
            )
            for seat in reservation.seat_numbers
        ]

        await ctx.persist(booking)

        # Built after commit so a bad recipient address cannot fail the booking
        return booking, partial(BookingConfirmation.from_booking, booking, user, bus, route)

    async def _unique_reference(self, ctx: TransactionContext) -> str:
        """Generate a reference not used by any booking, regenerating on collision."""
        reference = ""
        for _ in range(self.reference_max_attempts):
            reference = self.reference_generator.generate()
            existing = await ctx.session.scalar(
                select(Booking.id).where(Booking.reference == reference).limit(1)
            )
            if existing is None:
                return reference
            logger.warning(f"Booking reference collision on {reference}, regenerating")
        raise ReferenceCollisionError(reference)

    async def _current_clashes(self, reservation: ValidatedReservation) -> List[int]:
        """Recompute clashing seats from a fresh snapshot after a constraint violation."""
        async with self.session_factory() as session:
            held = await self.availability.held_seats(
                TransactionContext(session, transactional=False),
                reservation.bus_id,
                reservation.travel_date,
            )
        return sorted(set(reservation.seat_numbers) & held)
