"""Vehicle service for inventory operations."""

import logging
from datetime import datetime
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import atomic
from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from ..models.booking import ACTIVE_STATUSES, OCCUPYING_STATUSES, Booking
from ..models.vehicle import Vehicle, VehicleStatus, VehicleType
from ..schemas.inventory import CreateVehicleRequest, UpdateVehicleRequest
from .station_service import StationService

logger = logging.getLogger(__name__)

# Statuses staff may set by hand; RESERVED and RENTED belong to the booking lifecycle
MANUAL_STATUSES = (VehicleStatus.AVAILABLE, VehicleStatus.MAINTENANCE, VehicleStatus.OUT_OF_SERVICE)


class VehicleService:
    """Service for vehicle-related operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.station_service = StationService(db)

    async def get_vehicle_by_id(self, vehicle_id: UUID) -> Optional[Vehicle]:
        """Get a non-deleted vehicle by ID."""
        vehicle = await self.db.get(Vehicle, vehicle_id)
        if vehicle is None or vehicle.soft_deleted:
            return None
        return vehicle

    async def get_vehicle_by_id_or_raise(self, vehicle_id: UUID) -> Vehicle:
        """
        Get vehicle by ID or raise NotFoundError.

        Raises:
            NotFoundError: If the vehicle does not exist or was deleted
        """
        vehicle = await self.get_vehicle_by_id(vehicle_id)
        if not vehicle:
            raise NotFoundError(resource_type="vehicle", resource_id=vehicle_id)
        return vehicle

    async def get_vehicle_with_lock(self, vehicle_id: UUID) -> Optional[Vehicle]:
        """
        Get vehicle by ID holding a row lock until the transaction ends.

        On PostgreSQL this is SELECT ... FOR UPDATE; a concurrent unit of work
        touching the same vehicle waits here and then sees the committed state.
        SQLite ignores FOR UPDATE, but its transactions already begin with
        BEGIN IMMEDIATE and are therefore serialized.
        """
        result = await self.db.execute(
            select(Vehicle)
            .where(Vehicle.id == vehicle_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        vehicle = result.scalar_one_or_none()

        logger.debug("Acquired row lock for vehicle", extra={"vehicle_id": str(vehicle_id)})
        return vehicle

    async def find_overlapping_booking(
        self,
        vehicle_id: UUID,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[UUID] = None,
    ) -> Optional[Booking]:
        """
        First occupying booking of the vehicle overlapping [start, end).

        Half-open intervals: a booking ending exactly at ``start`` does not overlap.
        """
        stmt = (
            select(Booking)
            .where(
                Booking.vehicle_id == vehicle_id,
                Booking.status.in_(OCCUPYING_STATUSES),
                Booking.start_time < end,
                Booking.end_time > start,
            )
            .order_by(Booking.start_time)
            .limit(1)
        )
        if exclude_booking_id:
            stmt = stmt.where(Booking.id != exclude_booking_id)

        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def count_bookings(self, vehicle_id: UUID, statuses) -> int:
        """Count bookings of the vehicle in the given statuses."""
        count = await self.db.scalar(
            select(func.count())
            .select_from(Booking)
            .where(Booking.vehicle_id == vehicle_id, Booking.status.in_(statuses))
        )
        return count or 0

    async def list_vehicles(
        self,
        station_id: Optional[UUID] = None,
        status: Optional[VehicleStatus] = None,
        vehicle_type: Optional[VehicleType] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[Sequence[Vehicle], int]:
        """List non-deleted vehicles with optional filters."""
        conditions = [Vehicle.soft_deleted.is_(False)]
        if station_id:
            conditions.append(Vehicle.station_id == station_id)
        if status:
            conditions.append(Vehicle.status == status)
        if vehicle_type:
            conditions.append(Vehicle.type == vehicle_type)

        total = await self.db.scalar(select(func.count()).select_from(Vehicle).where(*conditions))
        result = await self.db.execute(
            select(Vehicle)
            .where(*conditions)
            .order_by(Vehicle.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return result.scalars().all(), total or 0

    async def check_availability(self, vehicle_id: UUID, start: datetime, end: datetime) -> dict:
        """
        Whether a booking for [start, end) would currently be accepted.

        Mirrors the checks of booking creation without taking any lock.
        """
        if start >= end:
            raise ValidationError("endTime must be after startTime")

        vehicle = await self.get_vehicle_by_id_or_raise(vehicle_id)
        clash = await self.find_overlapping_booking(vehicle_id, start, end)

        if clash:
            reason = "SLOT_CONFLICT"
        elif vehicle.status != VehicleStatus.AVAILABLE:
            reason = "VEHICLE_UNAVAILABLE"
        else:
            reason = None

        return {
            "vehicle_id": vehicle.id,
            "available": reason is None,
            "reason": reason,
            "status": vehicle.status,
        }

    async def _ensure_plate_free(self, license_plate: Optional[str], vehicle_id: Optional[UUID] = None) -> None:
        if not license_plate:
            return
        stmt = select(Vehicle.id).where(Vehicle.license_plate == license_plate)
        if vehicle_id:
            stmt = stmt.where(Vehicle.id != vehicle_id)
        if await self.db.scalar(stmt):
            raise ConflictError(
                detail=f"License plate {license_plate} is already registered",
                code="DUPLICATE_LICENSE_PLATE",
                conflicting_resource={"licensePlate": license_plate}
            )

    async def create_vehicle(self, request: CreateVehicleRequest) -> Vehicle:
        """
        Add a vehicle to a station.

        Raises:
            NotFoundError: If the station does not exist
            ConflictError: If the license plate is already registered
        """
        async with atomic(self.db):
            await self.station_service.get_station_by_id_or_raise(request.station_id)
            await self._ensure_plate_free(request.license_plate)

            vehicle = Vehicle(**request.model_dump(), status=VehicleStatus.AVAILABLE)
            self.db.add(vehicle)

        logger.info(
            "Vehicle created",
            extra={"vehicle_id": str(vehicle.id), "station_id": str(vehicle.station_id)}
        )
        return vehicle

    async def update_vehicle(self, vehicle_id: UUID, request: UpdateVehicleRequest) -> Vehicle:
        """Update the provided fields of a vehicle."""
        changes = request.model_dump(exclude_unset=True)

        async with atomic(self.db):
            vehicle = await self.get_vehicle_by_id_or_raise(vehicle_id)
            if changes.get("station_id"):
                await self.station_service.get_station_by_id_or_raise(changes["station_id"])
            if "license_plate" in changes:
                await self._ensure_plate_free(changes["license_plate"], vehicle_id)

            for field, value in changes.items():
                setattr(vehicle, field, value)

        logger.info("Vehicle updated", extra={"vehicle_id": str(vehicle_id), "fields": sorted(changes)})
        return vehicle

    async def update_status(self, vehicle_id: UUID, status: VehicleStatus) -> Vehicle:
        """
        Change a vehicle's maintenance status.

        Raises:
            ValidationError: If the target status is managed by the booking lifecycle
            ConflictError: If the vehicle has active bookings
        """
        if status not in MANUAL_STATUSES:
            raise ValidationError(
                f"Status {status.value} is set by the booking lifecycle",
                violations=[{"path": "status", "message": f"must be one of {[s.value for s in MANUAL_STATUSES]}"}],
            )

        async with atomic(self.db):
            vehicle = await self.get_vehicle_with_lock(vehicle_id)
            if vehicle is None or vehicle.soft_deleted:
                raise NotFoundError(resource_type="vehicle", resource_id=vehicle_id)

            active = await self.count_bookings(vehicle_id, ACTIVE_STATUSES)
            if active:
                raise ConflictError(
                    detail=f"Vehicle {vehicle_id} has {active} active booking(s)",
                    code="VEHICLE_IN_USE",
                    conflicting_resource={"vehicleId": str(vehicle_id), "activeBookings": active}
                )

            previous = vehicle.status
            vehicle.status = status

        logger.info(
            "Vehicle status changed",
            extra={"vehicle_id": str(vehicle_id), "from": previous, "to": status.value}
        )
        return vehicle

    async def delete_vehicle(self, vehicle_id: UUID) -> None:
        """
        Soft-delete a vehicle and take it out of service.

        Raises:
            NotFoundError: If the vehicle does not exist
            ConflictError: If the vehicle has active bookings
        """
        async with atomic(self.db):
            vehicle = await self.get_vehicle_with_lock(vehicle_id)
            if vehicle is None or vehicle.soft_deleted:
                raise NotFoundError(resource_type="vehicle", resource_id=vehicle_id)

            active = await self.count_bookings(vehicle_id, ACTIVE_STATUSES)
            if active:
                raise ConflictError(
                    detail=f"Vehicle {vehicle_id} has {active} active booking(s)",
                    code="VEHICLE_IN_USE",
                    conflicting_resource={"vehicleId": str(vehicle_id), "activeBookings": active}
                )

            vehicle.soft_deleted = True
            vehicle.status = VehicleStatus.OUT_OF_SERVICE

        logger.info("Vehicle deleted", extra={"vehicle_id": str(vehicle_id)})
