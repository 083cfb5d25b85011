"""Unit tests for booking service."""

from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from evrental.core.exceptions import AuthorizationError, InvalidStateError, NotFoundError, ValidationError
from evrental.core.timeutils import utcnow
from evrental.models import (
    Booking,
    BookingStatus,
    Notification,
    NotificationType,
    PromotionBooking,
    RentalHistory,
    Vehicle,
    VehicleStatus,
)
from evrental.schemas.booking import CancelBookingRequest, CompleteBookingRequest, CreateBookingRequest
from evrental.services.booking_service import (
    BookingService,
    SlotConflictError,
    VehicleUnavailableError,
)
from evrental.services.vehicle_service import VehicleService


def booking_request(vehicle_id, station_id, start, end, **overrides) -> CreateBookingRequest:
    values = {
        "vehicle_id": vehicle_id,
        "station_id": station_id,
        "start_time": start,
        "end_time": end,
        "pickup_location": "District 1 Central",
    }
    values.update(overrides)
    return CreateBookingRequest(**values)


@pytest.mark.asyncio
async def test_find_overlapping_booking_half_open(test_session, renter, vehicle, station, booking_window):
    """Bookings touching at an endpoint do not overlap."""
    receipt = await BookingService(test_session).create_booking(
        renter.id, booking_request(vehicle.id, station.id, *booking_window(2, 5))
    )
    vehicles = VehicleService(test_session)

    assert (await vehicles.find_overlapping_booking(vehicle.id, *booking_window(4, 6))).id == receipt.booking.id
    assert (await vehicles.find_overlapping_booking(vehicle.id, *booking_window(3, 4))).id == receipt.booking.id
    assert await vehicles.find_overlapping_booking(vehicle.id, *booking_window(5, 7)) is None
    assert await vehicles.find_overlapping_booking(vehicle.id, *booking_window(0, 2)) is None
    assert await vehicles.find_overlapping_booking(
        vehicle.id, *booking_window(3, 4), exclude_booking_id=receipt.booking.id
    ) is None


@pytest.mark.asyncio
async def test_create_booking(test_session, renter, vehicle, station, booking_window):
    """Test creating a booking reserves the vehicle and prices the rental."""
    service = BookingService(test_session)
    start, end = booking_window(0, 3)

    receipt = await service.create_booking(renter.id, booking_request(vehicle.id, station.id, start, end))
    booking = receipt.booking

    assert booking.id is not None
    assert booking.status == BookingStatus.PENDING
    assert booking.user_id == renter.id
    assert booking.start_time == start
    assert booking.end_time == end

    # 3 hours at 100000: insurance 10 %, tax 8 %
    assert booking.base_price == 300000
    assert booking.insurance_amount == 30000
    assert booking.tax_amount == 24000
    assert booking.discount_amount == 0
    assert booking.total_amount == 354000
    assert booking.deposit_amount == 500000
    assert receipt.quote.total_payable == 854000

    stored_vehicle = await test_session.get(Vehicle, vehicle.id)
    assert stored_vehicle.status == VehicleStatus.RESERVED

    notifications = (await test_session.execute(
        select(Notification).where(Notification.user_id == renter.id)
    )).scalars().all()
    assert [n.type for n in notifications] == [NotificationType.BOOKING_CREATED]


@pytest.mark.asyncio
async def test_create_booking_overlap_rejected(test_session, renter, other_renter, vehicle, station, booking_window):
    """Test an overlapping request fails with SLOT_CONFLICT and writes nothing."""
    service = BookingService(test_session)
    vehicle_id, station_id, other_id = vehicle.id, station.id, other_renter.id

    await service.create_booking(renter.id, booking_request(vehicle_id, station_id, *booking_window(0, 3)))

    with pytest.raises(SlotConflictError) as exc_info:
        await service.create_booking(other_id, booking_request(vehicle_id, station_id, *booking_window(2, 4)))

    assert exc_info.value.code == "SLOT_CONFLICT"
    assert exc_info.value.status_code == 409

    count = await test_session.scalar(
        select(func.count()).select_from(Booking).where(Booking.vehicle_id == vehicle_id)
    )
    assert count == 1


@pytest.mark.asyncio
async def test_create_booking_reserved_vehicle_unavailable(
    test_session, renter, other_renter, vehicle, station, booking_window
):
    """Test a reserved vehicle refuses even a non-overlapping request."""
    service = BookingService(test_session)
    vehicle_id, station_id, other_id = vehicle.id, station.id, other_renter.id

    await service.create_booking(renter.id, booking_request(vehicle_id, station_id, *booking_window(0, 3)))

    with pytest.raises(VehicleUnavailableError) as exc_info:
        await service.create_booking(other_id, booking_request(vehicle_id, station_id, *booking_window(3, 5)))

    assert exc_info.value.code == "VEHICLE_UNAVAILABLE"


@pytest.mark.asyncio
async def test_find_overlapping_booking_back_to_back(test_session, renter, vehicle, station, booking_window):
    """Test a booking ending at the requested start is not a clash."""
    service = BookingService(test_session)
    start, end = booking_window(0, 3)
    receipt = await service.create_booking(renter.id, booking_request(vehicle.id, station.id, start, end))

    vehicles = service.vehicle_service
    assert await vehicles.find_overlapping_booking(vehicle.id, *booking_window(3, 5)) is None
    assert await vehicles.find_overlapping_booking(vehicle.id, *booking_window(-2, 0)) is None

    clash = await vehicles.find_overlapping_booking(vehicle.id, *booking_window(2, 4))
    assert clash is not None
    assert clash.id == receipt.booking.id


@pytest.mark.asyncio
async def test_create_booking_rolls_back_reservation(test_session, renter, vehicle, station, booking_window):
    """Test the RESERVED write is undone when the overlap check fails."""
    vehicle_id, station_id = vehicle.id, station.id
    start, end = booking_window(0, 3)

    # An occupying booking left behind while the vehicle is AVAILABLE
    test_session.add(Booking(
        user_id=renter.id,
        vehicle_id=vehicle_id,
        station_id=station_id,
        start_time=start,
        end_time=end,
        status=BookingStatus.CONFIRMED,
    ))
    await test_session.commit()

    service = BookingService(test_session)
    with pytest.raises(SlotConflictError):
        await service.create_booking(renter.id, booking_request(vehicle_id, station_id, *booking_window(1, 2)))

    stored_vehicle = await test_session.get(Vehicle, vehicle_id)
    await test_session.refresh(stored_vehicle)
    assert stored_vehicle.status == VehicleStatus.AVAILABLE


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [VehicleStatus.MAINTENANCE, VehicleStatus.OUT_OF_SERVICE, VehicleStatus.RENTED])
async def test_create_booking_vehicle_not_available(
    test_session, renter, make_vehicle, station, booking_window, status
):
    """Test vehicles outside AVAILABLE cannot be booked."""
    vehicle = await make_vehicle(station.id, status=status)
    service = BookingService(test_session)

    with pytest.raises(VehicleUnavailableError):
        await service.create_booking(renter.id, booking_request(vehicle.id, station.id, *booking_window(0, 2)))


@pytest.mark.asyncio
async def test_create_booking_unknown_or_deleted_vehicle(
    test_session, renter, make_vehicle, station, booking_window
):
    """Test missing and soft-deleted vehicles are reported as unavailable."""
    deleted = await make_vehicle(station.id, soft_deleted=True)
    deleted_id, station_id, renter_id = deleted.id, station.id, renter.id
    service = BookingService(test_session)

    with pytest.raises(VehicleUnavailableError):
        await service.create_booking(renter_id, booking_request(uuid4(), station_id, *booking_window(0, 2)))

    with pytest.raises(VehicleUnavailableError):
        await service.create_booking(renter_id, booking_request(deleted_id, station_id, *booking_window(0, 2)))


@pytest.mark.asyncio
async def test_create_booking_unknown_station(test_session, renter, vehicle, booking_window):
    """Test booking at a station that does not exist."""
    service = BookingService(test_session)

    with pytest.raises(NotFoundError):
        await service.create_booking(renter.id, booking_request(vehicle.id, uuid4(), *booking_window(0, 2)))


@pytest.mark.asyncio
async def test_create_booking_applies_promotions(
    test_session, renter, vehicle, station, booking_window, make_promotion
):
    """Test active promotions discount the base price; expired and unknown ones are skipped."""
    now = utcnow()
    save10 = await make_promotion("SAVE10", 0.10)
    await make_promotion("OLD50", 0.50, valid_from=now - timedelta(days=30), valid_until=now - timedelta(days=1))
    service = BookingService(test_session)

    receipt = await service.create_booking(
        renter.id,
        booking_request(
            vehicle.id, station.id, *booking_window(0, 3),
            promotion_codes=["save10", "OLD50", "NOPE", "SAVE10"],
        ),
    )

    assert [promotion.code for promotion, _ in receipt.promotions] == ["SAVE10"]
    assert receipt.booking.discount_amount == 30000
    assert receipt.booking.total_amount == 354000 - 30000

    links = (await test_session.execute(
        select(PromotionBooking).where(PromotionBooking.booking_id == receipt.booking.id)
    )).scalars().all()
    assert len(links) == 1
    assert links[0].promotion_id == save10.id
    assert links[0].discount_amount == 30000


@pytest.mark.asyncio
async def test_complete_booking(test_session, renter, vehicle, station, booking_window, as_actor):
    """Test completion sets the booking COMPLETED and the vehicle AVAILABLE together."""
    service = BookingService(test_session)
    receipt = await service.create_booking(renter.id, booking_request(vehicle.id, station.id, *booking_window(0, 3)))

    booking = await service.complete_booking(
        renter.id,
        receipt.booking.id,
        CompleteBookingRequest(battery_level=64, return_odometer=120, rating=5, notes="Smooth ride"),
    )

    assert booking.status == BookingStatus.COMPLETED
    assert booking.actual_end_time is not None
    assert booking.return_odometer == 120

    stored_vehicle = await test_session.get(Vehicle, vehicle.id)
    assert stored_vehicle.status == VehicleStatus.AVAILABLE
    assert stored_vehicle.battery_level == 64

    history = await test_session.scalar(select(RentalHistory).where(RentalHistory.booking_id == booking.id))
    assert history is not None
    assert history.rating == 5
    assert history.distance == 120


@pytest.mark.asyncio
async def test_complete_booking_not_owner(test_session, renter, other_renter, vehicle, station, booking_window):
    """Test only the renter who booked can complete."""
    service = BookingService(test_session)
    receipt = await service.create_booking(renter.id, booking_request(vehicle.id, station.id, *booking_window(0, 3)))
    booking_id, vehicle_id = receipt.booking.id, vehicle.id

    with pytest.raises(AuthorizationError):
        await service.complete_booking(other_renter.id, booking_id)

    stored = await test_session.get(Booking, booking_id)
    assert stored.status == BookingStatus.PENDING
    assert (await test_session.get(Vehicle, vehicle_id)).status == VehicleStatus.RESERVED


@pytest.mark.asyncio
async def test_complete_booking_twice(test_session, renter, vehicle, station, booking_window):
    """Test a completed booking cannot be completed again."""
    service = BookingService(test_session)
    receipt = await service.create_booking(renter.id, booking_request(vehicle.id, station.id, *booking_window(0, 3)))
    renter_id, booking_id = renter.id, receipt.booking.id

    await service.complete_booking(renter_id, booking_id)

    with pytest.raises(InvalidStateError) as exc_info:
        await service.complete_booking(renter_id, booking_id)

    assert exc_info.value.code == "INVALID_STATE"
    assert exc_info.value.details["conflictingResource"]["status"] == "COMPLETED"


@pytest.mark.asyncio
async def test_complete_booking_not_found(test_session, renter):
    service = BookingService(test_session)

    with pytest.raises(NotFoundError):
        await service.complete_booking(renter.id, uuid4())


@pytest.mark.asyncio
async def test_confirm_booking(test_session, renter, vehicle, station, booking_window):
    """Test staff confirmation keeps the vehicle reserved."""
    service = BookingService(test_session)
    receipt = await service.create_booking(renter.id, booking_request(vehicle.id, station.id, *booking_window(0, 3)))
    booking_id = receipt.booking.id

    booking = await service.confirm_booking(booking_id)
    assert booking.status == BookingStatus.CONFIRMED
    assert (await test_session.get(Vehicle, vehicle.id)).status == VehicleStatus.RESERVED

    with pytest.raises(InvalidStateError):
        await service.confirm_booking(booking_id)


@pytest.mark.asyncio
async def test_cancel_booking_releases_vehicle(
    test_session, renter, other_renter, vehicle, station, booking_window, as_actor
):
    """Test cancellation frees the vehicle for the same period."""
    service = BookingService(test_session)
    receipt = await service.create_booking(renter.id, booking_request(vehicle.id, station.id, *booking_window(0, 3)))

    booking = await service.cancel_booking(
        as_actor(renter), receipt.booking.id, CancelBookingRequest(reason="Plans changed")
    )
    assert booking.status == BookingStatus.CANCELLED
    assert booking.notes == "Cancelled: Plans changed"
    assert (await test_session.get(Vehicle, vehicle.id)).status == VehicleStatus.AVAILABLE

    # The freed slot can be booked again
    again = await service.create_booking(
        other_renter.id, booking_request(vehicle.id, station.id, *booking_window(0, 3))
    )
    assert again.booking.status == BookingStatus.PENDING


@pytest.mark.asyncio
async def test_cancel_booking_other_renter_forbidden(
    test_session, renter, other_renter, vehicle, station, booking_window, as_actor
):
    service = BookingService(test_session)
    receipt = await service.create_booking(renter.id, booking_request(vehicle.id, station.id, *booking_window(0, 3)))

    with pytest.raises(AuthorizationError):
        await service.cancel_booking(as_actor(other_renter), receipt.booking.id)


@pytest.mark.asyncio
async def test_cancel_completed_booking(test_session, renter, staff_user, vehicle, station, booking_window, as_actor):
    """Test completed bookings cannot be cancelled, even by staff."""
    service = BookingService(test_session)
    receipt = await service.create_booking(renter.id, booking_request(vehicle.id, station.id, *booking_window(0, 3)))
    booking_id = receipt.booking.id
    staff = as_actor(staff_user)
    await service.complete_booking(renter.id, booking_id)

    with pytest.raises(InvalidStateError):
        await service.cancel_booking(staff, booking_id)


@pytest.mark.asyncio
async def test_list_bookings_filters(test_session, renter, other_renter, make_vehicle, station, booking_window):
    """Test listing with status and user filters."""
    first = await make_vehicle(station.id, license_plate="51A-000.01")
    second = await make_vehicle(station.id, license_plate="51A-000.02")
    service = BookingService(test_session)

    mine = await service.create_booking(renter.id, booking_request(first.id, station.id, *booking_window(0, 3)))
    await service.create_booking(other_renter.id, booking_request(second.id, station.id, *booking_window(0, 3)))
    await service.confirm_booking(mine.booking.id)

    bookings, total = await service.list_bookings()
    assert total == 2

    bookings, total = await service.list_bookings(user_id=renter.id)
    assert total == 1
    assert bookings[0].id == mine.booking.id

    bookings, total = await service.list_bookings(status=BookingStatus.PENDING)
    assert total == 1
    assert bookings[0].user_id == other_renter.id

    with pytest.raises(ValidationError):
        await service.list_bookings(start_date=utcnow(), end_date=utcnow() - timedelta(days=1))


@pytest.mark.asyncio
async def test_list_user_bookings_access(test_session, renter, other_renter, staff_user, as_actor):
    """Test renters may only list their own bookings."""
    service = BookingService(test_session)

    with pytest.raises(AuthorizationError):
        await service.list_user_bookings(as_actor(renter), other_renter.id)

    bookings, total = await service.list_user_bookings(as_actor(staff_user), other_renter.id)
    assert total == 0

    with pytest.raises(NotFoundError):
        await service.list_user_bookings(as_actor(staff_user), uuid4())


@pytest.mark.asyncio
async def test_analytics(test_session, renter, make_vehicle, station, booking_window, as_actor):
    """Test counts by status and top vehicles."""
    first = await make_vehicle(station.id, license_plate="51A-000.11")
    second = await make_vehicle(station.id, license_plate="51A-000.12")
    service = BookingService(test_session)

    done = await service.create_booking(renter.id, booking_request(first.id, station.id, *booking_window(0, 2)))
    await service.complete_booking(renter.id, done.booking.id)
    again = await service.create_booking(renter.id, booking_request(first.id, station.id, *booking_window(4, 6)))
    await service.cancel_booking(as_actor(renter), again.booking.id)
    await service.create_booking(renter.id, booking_request(second.id, station.id, *booking_window(0, 2)))

    analytics = await service.get_analytics()

    assert analytics["total_bookings"] == 3
    assert analytics["by_status"]["COMPLETED"] == 1
    assert analytics["by_status"]["CANCELLED"] == 1
    assert analytics["by_status"]["PENDING"] == 1
    assert analytics["by_status"]["IN_PROGRESS"] == 0
    # No payments yet
    assert analytics["total_revenue"] == 0
    assert analytics["top_vehicles"][0] == {"id": first.id, "booking_count": 2}
    assert analytics["top_stations"] == [{"id": station.id, "booking_count": 3}]
