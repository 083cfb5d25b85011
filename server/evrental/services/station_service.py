"""Station service for business logic operations."""

import logging
import math
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import atomic
from ..core.exceptions import ConflictError, NotFoundError
from ..models.booking import ACTIVE_STATUSES, Booking
from ..models.station import Station, StationStatus
from ..models.vehicle import Vehicle
from ..schemas.inventory import CreateStationRequest, UpdateStationRequest

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points in kilometres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


class StationService:
    """Service for station-related operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_station_by_id(self, station_id: UUID) -> Optional[Station]:
        """Get a non-deleted station by ID."""
        station = await self.db.get(Station, station_id)
        if station is None or station.soft_deleted:
            return None
        return station

    async def get_station_by_id_or_raise(self, station_id: UUID) -> Station:
        """
        Get station by ID or raise NotFoundError.

        Raises:
            NotFoundError: If the station does not exist or was deleted
        """
        station = await self.get_station_by_id(station_id)
        if not station:
            raise NotFoundError(resource_type="station", resource_id=station_id)
        return station

    async def list_stations(
        self,
        status: Optional[StationStatus] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[Sequence[Station], int]:
        """List non-deleted stations ordered by name."""
        conditions = [Station.soft_deleted.is_(False)]
        if status:
            conditions.append(Station.status == status)
        if search:
            pattern = f"%{search.lower()}%"
            conditions.append(
                func.lower(Station.name).like(pattern) | func.lower(Station.address).like(pattern)
            )

        total = await self.db.scalar(select(func.count()).select_from(Station).where(*conditions))
        result = await self.db.execute(
            select(Station)
            .where(*conditions)
            .order_by(Station.name)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return result.scalars().all(), total or 0

    async def find_nearby(
        self,
        latitude: float,
        longitude: float,
        radius_km: float = 10.0,
        limit: int = 20,
    ) -> list[tuple[Station, float]]:
        """Active stations within radius_km of a point, nearest first, with distances."""
        result = await self.db.execute(
            select(Station).where(
                Station.soft_deleted.is_(False),
                Station.status == StationStatus.ACTIVE,
            )
        )
        found = []
        for station in result.scalars():
            distance = haversine_km(latitude, longitude, station.latitude, station.longitude)
            if distance <= radius_km:
                found.append((station, round(distance, 3)))

        found.sort(key=lambda item: item[1])
        return found[:limit]

    async def create_station(self, request: CreateStationRequest) -> Station:
        """Create a new station."""
        async with atomic(self.db):
            station = Station(**request.model_dump())
            self.db.add(station)

        logger.info("Station created", extra={"station_id": str(station.id), "station_name": station.name})
        return station

    async def update_station(self, station_id: UUID, request: UpdateStationRequest) -> Station:
        """Update the provided fields of a station."""
        async with atomic(self.db):
            station = await self.get_station_by_id_or_raise(station_id)
            for field, value in request.model_dump(exclude_unset=True).items():
                setattr(station, field, value)

        logger.info("Station updated", extra={"station_id": str(station_id)})
        return station

    async def delete_station(self, station_id: UUID) -> None:
        """
        Soft-delete a station.

        Raises:
            NotFoundError: If the station does not exist
            ConflictError: If the station still has active bookings or vehicles
        """
        async with atomic(self.db):
            station = await self.get_station_by_id_or_raise(station_id)

            active_bookings = await self.db.scalar(
                select(func.count())
                .select_from(Booking)
                .where(Booking.station_id == station_id, Booking.status.in_(ACTIVE_STATUSES))
            )
            if active_bookings:
                raise ConflictError(
                    detail=f"Station {station_id} has {active_bookings} active booking(s)",
                    code="STATION_IN_USE",
                    conflicting_resource={"stationId": str(station_id), "activeBookings": active_bookings}
                )

            vehicles = await self.db.scalar(
                select(func.count())
                .select_from(Vehicle)
                .where(Vehicle.station_id == station_id, Vehicle.soft_deleted.is_(False))
            )
            if vehicles:
                raise ConflictError(
                    detail=f"Station {station_id} still has {vehicles} vehicle(s)",
                    code="STATION_IN_USE",
                    conflicting_resource={"stationId": str(station_id), "vehicles": vehicles}
                )

            station.soft_deleted = True
            station.status = StationStatus.INACTIVE

        logger.info("Station deleted", extra={"station_id": str(station_id)})
