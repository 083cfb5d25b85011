"""Property-based tests for booking system invariants."""

import asyncio
from datetime import datetime, timedelta

from hypothesis import given, settings
from hypothesis import strategies as st
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from evrental.core.database import Base, create_engine_from_url
from evrental.core.dependencies import CurrentUser
from evrental.core.exceptions import ConflictError
from evrental.models import OCCUPYING_STATUSES, Booking, Station, User, UserRole, Vehicle, VehicleStatus
from evrental.schemas.booking import CreateBookingRequest
from evrental.services.booking_service import BookingService
from evrental.services.pricing import quote_rental

BASE = datetime(2030, 1, 1)

# Strategies for generating test data
instants = st.integers(min_value=0, max_value=200)
intervals = st.tuples(instants, st.integers(min_value=1, max_value=48)).map(lambda p: (p[0], p[0] + p[1]))
rates = st.floats(min_value=0.01, max_value=1.0, allow_nan=False)
operations = st.lists(
    st.one_of(
        st.tuples(st.just("create"), intervals),
        st.tuples(st.just("cancel"), st.integers(min_value=0, max_value=10)),
        st.tuples(st.just("complete"), st.integers(min_value=0, max_value=10)),
    ),
    min_size=1,
    max_size=15,
)


def overlaps(a: Booking, b: Booking) -> bool:
    """Half-open overlap of two bookings: [start, end) share an instant."""
    return a.start_time < b.end_time and b.start_time < a.end_time


@given(
    hourly_rate=st.integers(min_value=0, max_value=10_000_000),
    minutes=st.integers(min_value=1, max_value=60 * 24 * 14),
    discounts=st.lists(rates, max_size=5),
)
def test_quote_total_never_negative(hourly_rate, minutes, discounts):
    """Test total = subtotal - discount and stays within [0, subtotal]."""
    quote = quote_rental(
        hourly_rate=hourly_rate,
        deposit_amount=0,
        start=BASE,
        end=BASE + timedelta(minutes=minutes),
        discount_rates=discounts,
    )

    assert 0 <= quote.total_amount <= quote.subtotal
    assert quote.total_amount == quote.subtotal - quote.discount_amount
    assert sum(quote.applied_discounts) == quote.discount_amount
    assert quote.hours * 60 >= minutes


async def _run_lifecycle(steps) -> None:
    engine = create_engine_from_url("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    try:
        async with session_factory() as session:
            station = Station(name="Station", address="1 Test Street", latitude=0.0, longitude=0.0)
            renter = User(email="renter@example.com", password_hash="x", name="Renter", role=UserRole.RENTER)
            session.add_all([station, renter])
            await session.flush()
            vehicle = Vehicle(station_id=station.id, brand="VinFast", model="VF 5", hourly_rate=1000)
            session.add(vehicle)
            await session.commit()

            vehicle_id, station_id, renter_id = vehicle.id, station.id, renter.id
            actor = CurrentUser(id=renter_id, role=UserRole.RENTER)
            service = BookingService(session)
            created = []

            for action, arg in steps:
                try:
                    if action == "create":
                        start, end = arg
                        receipt = await service.create_booking(
                            renter_id,
                            CreateBookingRequest(
                                vehicle_id=vehicle_id,
                                station_id=station_id,
                                start_time=BASE + timedelta(hours=start),
                                end_time=BASE + timedelta(hours=end),
                                pickup_location="Counter",
                            ),
                        )
                        created.append(receipt.booking.id)
                    elif created:
                        booking_id = created[arg % len(created)]
                        if action == "cancel":
                            await service.cancel_booking(actor, booking_id)
                        else:
                            await service.complete_booking(renter_id, booking_id)
                except ConflictError:
                    # Rejected transitions must leave no trace
                    pass

                occupying = (await session.execute(
                    select(Booking).where(Booking.vehicle_id == vehicle_id, Booking.status.in_(OCCUPYING_STATUSES))
                )).scalars().all()
                current = await session.get(Vehicle, vehicle_id, populate_existing=True)

                # Invariants
                for i, first in enumerate(occupying):
                    for second in occupying[i + 1:]:
                        assert not overlaps(first, second)
                expected = VehicleStatus.RESERVED if occupying else VehicleStatus.AVAILABLE
                assert current.status == expected
    finally:
        await engine.dispose()


@settings(max_examples=25, deadline=None)
@given(steps=operations)
def test_lifecycle_keeps_vehicle_and_bookings_consistent(steps):
    """Test occupying bookings never overlap and the vehicle is RESERVED exactly while one exists."""
    asyncio.run(_run_lifecycle(steps))
