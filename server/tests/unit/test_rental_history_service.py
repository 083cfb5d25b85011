"""Unit tests for rental history service."""

from uuid import uuid4

import pytest
from pydantic import ValidationError as SchemaValidationError

from evrental.core.exceptions import AuthorizationError, NotFoundError
from evrental.models import RentalHistory
from evrental.schemas.booking import CompleteBookingRequest, CreateBookingRequest, UpdateRentalHistoryRequest
from evrental.services.booking_service import BookingService
from evrental.services.rental_history_service import RentalHistoryService


@pytest.fixture
def finish_rental(test_session, station, vehicle, booking_window):
    """Book the shared vehicle and complete the booking, returning the booking."""

    async def _finish(renter, **details):
        service = BookingService(test_session)
        start, end = booking_window(0, 3)
        receipt = await service.create_booking(
            renter.id,
            CreateBookingRequest(
                vehicle_id=vehicle.id,
                station_id=station.id,
                start_time=start,
                end_time=end,
                pickup_location="District 1 Central",
            ),
        )
        return await service.complete_booking(renter.id, receipt.booking.id, CompleteBookingRequest(**details))

    return _finish


@pytest.mark.asyncio
async def test_completion_history_is_readable(test_session, renter, other_renter, staff_user, finish_rental, as_actor):
    """Test the record written at completion can be read by its owner and staff only."""
    booking = await finish_rental(renter, rating=5, notes="Smooth ride", return_odometer=42)
    service = RentalHistoryService(test_session)

    history = await service.get_history_for_booking(as_actor(renter), booking.id)
    assert history.user_id == renter.id
    assert history.rating == 5
    assert history.feedback == "Smooth ride"
    assert history.distance == 42

    assert (await service.get_history(as_actor(staff_user), history.id)).id == history.id

    with pytest.raises(AuthorizationError):
        await service.get_history(as_actor(other_renter), history.id)
    with pytest.raises(AuthorizationError):
        await service.get_history_for_booking(as_actor(other_renter), booking.id)


@pytest.mark.asyncio
async def test_history_missing(test_session, renter, as_actor):
    service = RentalHistoryService(test_session)

    with pytest.raises(NotFoundError):
        await service.get_history(as_actor(renter), uuid4())
    with pytest.raises(NotFoundError):
        await service.get_history_for_booking(as_actor(renter), uuid4())


@pytest.mark.asyncio
async def test_list_histories(test_session, renter, other_renter, staff_user, finish_rental, as_actor):
    await finish_rental(renter, rating=4)
    await finish_rental(other_renter, rating=2)
    await finish_rental(renter)
    service = RentalHistoryService(test_session)

    histories, total = await service.list_histories()
    assert total == 3

    histories, total = await service.list_histories(rating=2)
    assert total == 1
    assert histories[0].user_id == other_renter.id

    histories, total = await service.list_user_histories(as_actor(renter), renter.id, page=1, limit=1)
    assert total == 2
    assert len(histories) == 1

    histories, total = await service.list_user_histories(as_actor(staff_user), other_renter.id)
    assert total == 1

    with pytest.raises(AuthorizationError):
        await service.list_user_histories(as_actor(renter), other_renter.id)
    with pytest.raises(NotFoundError):
        await service.list_user_histories(as_actor(staff_user), uuid4())


@pytest.mark.asyncio
async def test_rental_statistics(test_session, renter, other_renter, staff_user, finish_rental, as_actor):
    """Test totals, the average over rated rentals and the rating distribution."""
    first = await finish_rental(renter, rating=5, return_odometer=30)
    second = await finish_rental(renter, rating=4, return_odometer=12)
    await finish_rental(renter)
    await finish_rental(other_renter, rating=1)
    service = RentalHistoryService(test_session)

    mine = await service.get_statistics(as_actor(renter))
    assert mine["total_rentals"] == 3
    assert mine["average_rating"] == 4.5
    assert mine["total_distance"] == 42
    assert mine["total_spent"] == first.total_amount * 3
    assert second.total_amount == first.total_amount
    assert mine["rating_distribution"] == [{"rating": 4, "count": 1}, {"rating": 5, "count": 1}]

    overall = await service.get_statistics(as_actor(staff_user))
    assert overall["total_rentals"] == 4
    assert overall["average_rating"] == round(10 / 3, 2)

    with pytest.raises(AuthorizationError):
        await service.get_statistics(as_actor(renter), other_renter.id)


@pytest.mark.asyncio
async def test_update_history_rating(test_session, renter, other_renter, finish_rental, as_actor):
    booking = await finish_rental(renter, notes="Fine")
    owner, intruder = as_actor(renter), as_actor(other_renter)
    service = RentalHistoryService(test_session)
    history = await service.get_history_for_booking(owner, booking.id)
    history_id = history.id

    with pytest.raises(AuthorizationError):
        await service.update_history(intruder, history_id, UpdateRentalHistoryRequest(rating=1))

    updated = await service.update_history(owner, history_id, UpdateRentalHistoryRequest(rating=3))

    assert updated.rating == 3
    assert updated.feedback == "Fine"


def test_update_history_needs_a_field():
    with pytest.raises(SchemaValidationError):
        UpdateRentalHistoryRequest()
    with pytest.raises(SchemaValidationError):
        UpdateRentalHistoryRequest(rating=6)


@pytest.mark.asyncio
async def test_delete_history(test_session, renter, finish_rental, as_actor):
    booking = await finish_rental(renter)
    service = RentalHistoryService(test_session)
    history = await service.get_history_for_booking(as_actor(renter), booking.id)
    history_id = history.id

    deleted = await service.delete_history(history_id)

    assert deleted.booking_id == booking.id
    assert await test_session.get(RentalHistory, history_id) is None
    with pytest.raises(NotFoundError):
        await service.delete_history(history_id)
