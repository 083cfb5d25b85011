"""Vehicle inspection router."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import CurrentUser, RequiredAuth, StaffOnly
from ..core.responses import success_response
from ..schemas.registry import CreateInspectionRequest, InspectionOut, InspectionStats, UpdateInspectionRequest
from ..services.inspection_service import InspectionService

router = APIRouter(prefix="/api/inspections", tags=["inspections"])

DB_DEPENDENCY = Depends(get_db)


def _many(inspections) -> dict:
    return {"inspections": [InspectionOut.model_validate(inspection) for inspection in inspections]}


@router.post("", status_code=201)
async def create_inspection(
    request: CreateInspectionRequest,
    user: CurrentUser = StaffOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    inspection = await InspectionService(db).create_inspection(user.id, request)
    return success_response(
        {"inspection": InspectionOut.model_validate(inspection)},
        "Inspection recorded",
        status_code=201,
    )


@router.get("/stats")
async def inspection_stats(
    vehicle_id: Optional[UUID] = Query(None, alias="vehicleId"),
    _: CurrentUser = StaffOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    stats = await InspectionService(db).get_stats(vehicle_id)
    return success_response(InspectionStats.model_validate(stats))


@router.get("/vehicle/{vehicle_id}")
async def list_vehicle_inspections(
    vehicle_id: UUID,
    _: CurrentUser = StaffOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    return success_response(_many(await InspectionService(db).list_for_vehicle(vehicle_id)))


@router.get("/booking/{booking_id}")
async def list_booking_inspections(
    booking_id: UUID,
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    return success_response(_many(await InspectionService(db).list_for_booking(user, booking_id)))


@router.get("/staff/{staff_id}")
async def list_staff_inspections(
    staff_id: UUID,
    _: CurrentUser = StaffOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    return success_response(_many(await InspectionService(db).list_for_staff(staff_id)))


@router.get("/{inspection_id}")
async def get_inspection(
    inspection_id: UUID,
    _: CurrentUser = StaffOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    inspection = await InspectionService(db).get_inspection_by_id_or_raise(inspection_id)
    return success_response({"inspection": InspectionOut.model_validate(inspection)})


@router.put("/{inspection_id}")
async def update_inspection(
    inspection_id: UUID,
    request: UpdateInspectionRequest,
    _: CurrentUser = StaffOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    inspection = await InspectionService(db).update_inspection(inspection_id, request)
    return success_response({"inspection": InspectionOut.model_validate(inspection)}, "Inspection updated")


@router.delete("/{inspection_id}")
async def delete_inspection(
    inspection_id: UUID,
    _: CurrentUser = StaffOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    await InspectionService(db).delete_inspection(inspection_id)
    return success_response(message="Inspection deleted")
