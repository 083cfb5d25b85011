"""Vehicle inspection service."""

import logging
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import atomic
from ..core.dependencies import CurrentUser
from ..core.exceptions import NotFoundError
from ..models.inspection import InspectionType, VehicleInspection
from ..schemas.registry import CreateInspectionRequest, UpdateInspectionRequest
from .booking_service import BookingService
from .vehicle_service import VehicleService

logger = logging.getLogger(__name__)


class InspectionService:
    """Service for vehicle inspection operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.vehicle_service = VehicleService(db)
        self.booking_service = BookingService(db)

    async def get_inspection_by_id_or_raise(self, inspection_id: UUID) -> VehicleInspection:
        inspection = await self.db.get(VehicleInspection, inspection_id)
        if not inspection:
            raise NotFoundError(resource_type="inspection", resource_id=inspection_id)
        return inspection

    async def create_inspection(self, staff_id: UUID, request: CreateInspectionRequest) -> VehicleInspection:
        """
        Record an inspection.

        A CHECK_OUT inspection that reports a battery level also updates the
        vehicle's battery level in the same unit of work.

        Raises:
            NotFoundError: If the vehicle, or the booking when given, does not exist
        """
        async with atomic(self.db):
            vehicle = await self.vehicle_service.get_vehicle_by_id_or_raise(request.vehicle_id)
            if request.booking_id:
                await self.booking_service.get_booking_by_id_or_raise(request.booking_id)

            inspection = VehicleInspection(staff_id=staff_id, **request.model_dump())
            self.db.add(inspection)

            if request.inspection_type == InspectionType.CHECK_OUT and request.battery_level is not None:
                vehicle.battery_level = request.battery_level

        logger.info(
            "Inspection recorded",
            extra={
                "inspection_id": str(inspection.id),
                "vehicle_id": str(request.vehicle_id),
                "inspection_type": request.inspection_type.value,
                "staff_id": str(staff_id),
            }
        )
        return inspection

    async def update_inspection(self, inspection_id: UUID, request: UpdateInspectionRequest) -> VehicleInspection:
        changes = request.model_dump(exclude_unset=True)

        async with atomic(self.db):
            inspection = await self.get_inspection_by_id_or_raise(inspection_id)
            for field, value in changes.items():
                setattr(inspection, field, value)

        logger.info("Inspection updated", extra={"inspection_id": str(inspection_id), "fields": sorted(changes)})
        return inspection

    async def delete_inspection(self, inspection_id: UUID) -> None:
        async with atomic(self.db):
            inspection = await self.get_inspection_by_id_or_raise(inspection_id)
            await self.db.delete(inspection)

        logger.info("Inspection deleted", extra={"inspection_id": str(inspection_id)})

    async def _list(self, *conditions) -> Sequence[VehicleInspection]:
        result = await self.db.execute(
            select(VehicleInspection).where(*conditions).order_by(VehicleInspection.created_at.desc())
        )
        return result.scalars().all()

    async def list_for_vehicle(self, vehicle_id: UUID) -> Sequence[VehicleInspection]:
        await self.vehicle_service.get_vehicle_by_id_or_raise(vehicle_id)
        return await self._list(VehicleInspection.vehicle_id == vehicle_id)

    async def list_for_booking(self, actor: CurrentUser, booking_id: UUID) -> Sequence[VehicleInspection]:
        """Inspections of a booking; a renter may read those of their own booking."""
        booking = await self.booking_service.get_booking_by_id_or_raise(booking_id)
        self.booking_service.ensure_can_access(actor, booking)
        return await self._list(VehicleInspection.booking_id == booking_id)

    async def list_for_staff(self, staff_id: UUID) -> Sequence[VehicleInspection]:
        return await self._list(VehicleInspection.staff_id == staff_id)

    async def get_stats(self, vehicle_id: Optional[UUID] = None) -> dict:
        """Counts per inspection type and completed versus pending."""
        conditions = []
        if vehicle_id:
            conditions.append(VehicleInspection.vehicle_id == vehicle_id)

        rows = await self.db.execute(
            select(VehicleInspection.inspection_type, VehicleInspection.is_completed, func.count())
            .where(*conditions)
            .group_by(VehicleInspection.inspection_type, VehicleInspection.is_completed)
        )

        by_type = {kind.value: 0 for kind in InspectionType}
        completed = pending = 0
        for kind, is_completed, count in rows.all():
            by_type[str(kind)] = by_type.get(str(kind), 0) + count
            if is_completed:
                completed += count
            else:
                pending += count

        return {"total": completed + pending, "by_type": by_type, "completed": completed, "pending": pending}
