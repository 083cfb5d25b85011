"""Test configuration and fixtures."""

import os

# Cheap password hashing for the whole test session; must be set before settings load
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from datetime import timedelta
from typing import Optional
from uuid import UUID

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from evrental.core.database import Base, create_engine_from_url, get_db
from evrental.core.dependencies import CurrentUser
from evrental.core.security import create_access_token, hash_password
from evrental.core.timeutils import utcnow
from evrental.models import *  # noqa: F403 - Import all models
from evrental.models import Promotion, Station, User, UserRole, Vehicle, VehicleStatus
from evrental.services.payment_gateway import GatewayMode, PaymentGateway, get_payment_gateway

# Test database URL (in-memory SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_CHECKSUM_KEY = "test-checksum-key"

TEST_PASSWORD = "Password123!"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_engine_from_url(TEST_DATABASE_URL)

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_session(test_engine):
    """Create a test database session."""
    async_session = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session() as session:
        yield session


@pytest.fixture
def gateway():
    """Payment gateway in mock mode with a known checksum key."""
    return PaymentGateway(mode=GatewayMode.MOCK, checksum_key=TEST_CHECKSUM_KEY)


@pytest_asyncio.fixture(scope="function")
async def test_app(test_session, gateway):
    """Create the FastAPI application bound to the test session."""
    from evrental.main import create_app

    app = create_app()

    # Override database dependency
    async def override_get_db():
        yield test_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway

    yield app

    # Clean up
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# Factories

@pytest.fixture
def make_user(test_session):
    """Factory for persisted users."""
    counter = {"n": 0}

    async def _make_user(
        role: UserRole = UserRole.RENTER,
        email: Optional[str] = None,
        station_id: Optional[UUID] = None,
        **overrides,
    ) -> User:
        counter["n"] += 1
        values = {
            "email": email or f"{role.value.lower()}{counter['n']}@example.com",
            "password_hash": hash_password(TEST_PASSWORD),
            "name": f"Test {role.value.title()} {counter['n']}",
            "role": role,
            "station_id": station_id,
        }
        values.update(overrides)
        user = User(**values)
        test_session.add(user)
        await test_session.commit()
        return user

    return _make_user


@pytest.fixture
def make_station(test_session):
    """Factory for persisted stations."""

    async def _make_station(**overrides) -> Station:
        values = {
            "name": "District 1 Central",
            "address": "12 Nguyen Hue, District 1",
            "latitude": 10.7769,
            "longitude": 106.7009,
            "capacity": 20,
        }
        values.update(overrides)
        station = Station(**values)
        test_session.add(station)
        await test_session.commit()
        return station

    return _make_station


@pytest.fixture
def make_vehicle(test_session):
    """Factory for persisted vehicles."""

    async def _make_vehicle(station_id: UUID, **overrides) -> Vehicle:
        values = {
            "station_id": station_id,
            "brand": "VinFast",
            "model": "VF 8",
            "hourly_rate": 100000,
            "deposit_amount": 500000,
            "status": VehicleStatus.AVAILABLE,
        }
        values.update(overrides)
        vehicle = Vehicle(**values)
        test_session.add(vehicle)
        await test_session.commit()
        return vehicle

    return _make_vehicle


@pytest.fixture
def make_promotion(test_session):
    """Factory for persisted promotions, active from now by default."""

    async def _make_promotion(code: str = "SAVE10", discount: float = 0.10, **overrides) -> Promotion:
        now = utcnow()
        values = {
            "code": code,
            "discount": discount,
            "valid_from": now - timedelta(days=1),
            "valid_until": now + timedelta(days=30),
        }
        values.update(overrides)
        promotion = Promotion(**values)
        test_session.add(promotion)
        await test_session.commit()
        return promotion

    return _make_promotion


@pytest_asyncio.fixture
async def station(make_station):
    return await make_station()


@pytest_asyncio.fixture
async def vehicle(make_vehicle, station):
    return await make_vehicle(station.id)


@pytest_asyncio.fixture
async def renter(make_user):
    return await make_user(UserRole.RENTER)


@pytest_asyncio.fixture
async def other_renter(make_user):
    return await make_user(UserRole.RENTER)


@pytest_asyncio.fixture
async def staff_user(make_user, station):
    return await make_user(UserRole.STAFF, station_id=station.id)


@pytest_asyncio.fixture
async def admin_user(make_user):
    return await make_user(UserRole.ADMIN)


@pytest.fixture
def as_actor():
    """Caller identity for service calls made on behalf of a user."""

    def _as_actor(user: User) -> CurrentUser:
        return CurrentUser(id=user.id, role=UserRole(user.role))

    return _as_actor


@pytest.fixture
def auth_headers():
    """Bearer header carrying a fresh access token for a user."""

    def _auth_headers(user: User) -> dict[str, str]:
        token = create_access_token(str(user.id), UserRole(user.role).value)
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers


@pytest.fixture
def booking_window():
    """Factory for [start, end) windows, in hours from a fixed point tomorrow."""
    base = utcnow().replace(minute=0, second=0, microsecond=0) + timedelta(days=1)

    def _window(start_hour: float, end_hour: float):
        return base + timedelta(hours=start_hour), base + timedelta(hours=end_hour)

    return _window
