import uuid
from datetime import date
from unittest.mock import patch

import pytest

from gobus_booking_platform.models import BookingStatus, PaymentStatus
from gobus_booking_platform.services.booking_service import BookingService
from gobus_booking_platform.utils.exceptions import (
    AuthorizationError,
    BookingNotFoundError,
    BusNotFoundError,
    InvalidBookingStateError,
    ValidationError,
)

from conftest import TRAVEL_DATE


@pytest.fixture
def reserve(make_orchestrator, fleet):
    orchestrator = make_orchestrator()

    async def _reserve(seats, **overrides):
        return await orchestrator.reserve(fleet.request(seats, **overrides))

    return _reserve


async def test_availability_snapshot(session_factory, fleet, reserve):
    await reserve([1, 2])
    await reserve([40], user_id=fleet.other_rider.id)

    async with session_factory() as session:
        snapshot = await BookingService(session).get_availability(fleet.bus.id, "2025-03-01T18:00:00")

    assert snapshot["bus_id"] == fleet.bus.id
    assert snapshot["travel_date"] == TRAVEL_DATE
    assert snapshot["capacity"] == 40
    assert snapshot["booked_seats"] == [1, 2, 40]
    assert snapshot["available_seats"] == list(range(3, 40))


async def test_availability_for_unknown_bus(session_factory, fleet):
    async with session_factory() as session:
        with pytest.raises(BusNotFoundError):
            await BookingService(session).get_availability(uuid.uuid4(), TRAVEL_DATE)
        with pytest.raises(ValidationError):
            await BookingService(session).get_availability(fleet.bus.id, "someday")


async def test_cancel_is_idempotent_and_frees_seats(session_factory, fleet, reserve, booked_seats):
    booking = await reserve([5, 6])

    async with session_factory() as session:
        cancelled, changed = await BookingService(session).cancel_booking(booking.id, fleet.rider)
    assert changed is True
    assert cancelled.status == BookingStatus.CANCELLED
    assert await booked_seats(fleet.bus.id) == []

    async with session_factory() as session:
        again, changed = await BookingService(session).cancel_booking(booking.id, fleet.rider)
    assert changed is False
    assert again.status == BookingStatus.CANCELLED

    rebooked = await reserve([5, 6], user_id=fleet.other_rider.id)
    assert rebooked.seat_numbers == [5, 6]
    assert await booked_seats(fleet.bus.id) == [5, 6]


async def test_cancel_requires_owner_or_admin(session_factory, fleet, reserve):
    booking = await reserve([7])

    async with session_factory() as session:
        with pytest.raises(AuthorizationError):
            await BookingService(session).cancel_booking(booking.id, fleet.other_rider)

    async with session_factory() as session:
        _, changed = await BookingService(session).cancel_booking(booking.id, fleet.admin)
    assert changed is True


async def test_get_booking_for_owner_and_admin_only(session_factory, fleet, reserve):
    booking = await reserve([8])

    async with session_factory() as session:
        service = BookingService(session)
        assert (await service.get_booking_for(booking.id, fleet.rider)).reference == booking.reference
        assert (await service.get_booking_for(booking.id, fleet.admin)).id == booking.id
        with pytest.raises(AuthorizationError):
            await service.get_booking_for(booking.id, fleet.other_rider)
        with pytest.raises(BookingNotFoundError):
            await service.get_booking_for(uuid.uuid4(), fleet.admin)


async def test_payment_transitions(session_factory, fleet, reserve):
    booking = await reserve([9])

    async with session_factory() as session:
        service = BookingService(session)
        with pytest.raises(InvalidBookingStateError):
            await service.mark_refunded(booking.id)

        paid = await service.mark_paid(booking.id)
        assert paid.payment_status == PaymentStatus.PAID
        assert paid.status == BookingStatus.ACTIVE

        refunded = await service.mark_refunded(booking.id)
        assert refunded.payment_status == PaymentStatus.REFUNDED

        assert (await service.mark_refunded(booking.id)).payment_status == PaymentStatus.REFUNDED


async def test_payment_transitions_are_recorded_as_business_events(session_factory, fleet, reserve):
    booking = await reserve([11])

    with patch("gobus_booking_platform.services.booking_lifecycle.log_business_event") as log_event:
        async with session_factory() as session:
            service = BookingService(session)
            await service.mark_paid(booking.id)
            await service.mark_refunded(booking.id)
            await service.mark_refunded(booking.id)

    events = [call.args[0] for call in log_event.call_args_list]
    assert events == ["booking_paid", "booking_refunded"]
    refunded = log_event.call_args_list[1]
    assert refunded.args[1]["reference"] == booking.reference
    assert refunded.kwargs["user_id"] == str(fleet.rider.id)


async def test_cancelled_booking_can_still_be_marked_paid(session_factory, fleet, reserve):
    booking = await reserve([10])

    async with session_factory() as session:
        service = BookingService(session)
        await service.cancel_booking(booking.id, fleet.rider)
        paid = await service.mark_paid(booking.id)

    assert paid.status == BookingStatus.CANCELLED
    assert paid.payment_status == PaymentStatus.PAID


async def test_list_user_bookings_newest_first(session_factory, fleet, reserve):
    first = await reserve([1])
    second = await reserve([2])
    await reserve([3], user_id=fleet.other_rider.id)

    async with session_factory() as session:
        bookings = await BookingService(session).list_user_bookings(fleet.rider.id)

    assert [booking.id for booking in bookings] == [second.id, first.id]


async def test_list_bookings_filters(session_factory, fleet, reserve):
    await reserve([1])
    other = await reserve([2], user_id=fleet.other_rider.id)
    await reserve([3], travel_date=date(2025, 3, 2))

    async with session_factory() as session:
        service = BookingService(session)
        await service.cancel_booking(other.id, fleet.other_rider)

        everything, total = await service.list_bookings()
        assert total == 3
        assert len(everything) == 3

        by_rider, total = await service.list_bookings(user_id=fleet.rider.id)
        assert total == 2

        on_day, total = await service.list_bookings(travel_date="2025-03-01")
        assert total == 2

        cancelled, total = await service.list_bookings(status=BookingStatus.CANCELLED)
        assert [booking.id for booking in cancelled] == [other.id]

        page, total = await service.list_bookings(limit=1, offset=1)
        assert total == 3
        assert len(page) == 1
