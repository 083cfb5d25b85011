"""Station and vehicle router."""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import AdminOnly, CurrentUser, StaffOnly
from ..core.responses import success_response
from ..core.timeutils import to_naive_utc
from ..models.station import StationStatus
from ..models.vehicle import VehicleStatus, VehicleType
from ..schemas.common import Pagination
from ..schemas.inventory import (
    CreateStationRequest,
    CreateVehicleRequest,
    NearbyStationOut,
    StationOut,
    UpdateStationRequest,
    UpdateVehicleRequest,
    UpdateVehicleStatusRequest,
    VehicleOut,
)
from ..services.station_service import StationService
from ..services.vehicle_service import VehicleService

logger = logging.getLogger(__name__)

station_router = APIRouter(prefix="/api/stations", tags=["stations"])
vehicle_router = APIRouter(prefix="/api/vehicles", tags=["vehicles"])

DB_DEPENDENCY = Depends(get_db)


# Stations

@station_router.get("")
async def list_stations(
    status: Optional[StationStatus] = None,
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    stations, total = await StationService(db).list_stations(status, search, page, limit)
    return success_response({
        "stations": [StationOut.model_validate(station) for station in stations],
        "pagination": Pagination.build(page, limit, total),
    })


@station_router.get("/nearby")
async def nearby_stations(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius_km: float = Query(10.0, alias="radiusKm", gt=0, le=500),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Active stations within radiusKm of (lat, lng), nearest first."""
    found = await StationService(db).find_nearby(lat, lng, radius_km, limit)
    stations = [
        NearbyStationOut.model_validate({**StationOut.model_validate(station).model_dump(), "distance_km": distance})
        for station, distance in found
    ]
    return success_response({"stations": stations})


@station_router.get("/{station_id}")
async def get_station(station_id: UUID, db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
    station = await StationService(db).get_station_by_id_or_raise(station_id)
    return success_response({"station": StationOut.model_validate(station)})


@station_router.post("", status_code=201)
async def create_station(
    request: CreateStationRequest,
    _: CurrentUser = AdminOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    station = await StationService(db).create_station(request)
    return success_response({"station": StationOut.model_validate(station)}, "Station created", status_code=201)


@station_router.put("/{station_id}")
async def update_station(
    station_id: UUID,
    request: UpdateStationRequest,
    _: CurrentUser = AdminOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    station = await StationService(db).update_station(station_id, request)
    return success_response({"station": StationOut.model_validate(station)}, "Station updated")


@station_router.delete("/{station_id}")
async def delete_station(
    station_id: UUID,
    _: CurrentUser = AdminOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Soft-delete a station that has no active bookings and no vehicles."""
    await StationService(db).delete_station(station_id)
    return success_response(message="Station deleted")


# Vehicles

@vehicle_router.get("")
async def list_vehicles(
    station_id: Optional[UUID] = Query(None, alias="stationId"),
    status: Optional[VehicleStatus] = None,
    vehicle_type: Optional[VehicleType] = Query(None, alias="type"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    vehicles, total = await VehicleService(db).list_vehicles(station_id, status, vehicle_type, page, limit)
    return success_response({
        "vehicles": [VehicleOut.model_validate(vehicle) for vehicle in vehicles],
        "pagination": Pagination.build(page, limit, total),
    })


@vehicle_router.get("/{vehicle_id}")
async def get_vehicle(vehicle_id: UUID, db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
    vehicle = await VehicleService(db).get_vehicle_by_id_or_raise(vehicle_id)
    return success_response({"vehicle": VehicleOut.model_validate(vehicle)})


@vehicle_router.get("/{vehicle_id}/availability")
async def vehicle_availability(
    vehicle_id: UUID,
    start_time: datetime = Query(..., alias="startTime"),
    end_time: datetime = Query(..., alias="endTime"),
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Whether a booking for [startTime, endTime) would currently be accepted."""
    availability = await VehicleService(db).check_availability(
        vehicle_id, to_naive_utc(start_time), to_naive_utc(end_time)
    )
    return success_response({
        "vehicleId": availability["vehicle_id"],
        "available": availability["available"],
        "reason": availability["reason"],
        "status": availability["status"],
    })


@vehicle_router.post("", status_code=201)
async def create_vehicle(
    request: CreateVehicleRequest,
    _: CurrentUser = StaffOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    vehicle = await VehicleService(db).create_vehicle(request)
    return success_response({"vehicle": VehicleOut.model_validate(vehicle)}, "Vehicle created", status_code=201)


@vehicle_router.put("/{vehicle_id}")
async def update_vehicle(
    vehicle_id: UUID,
    request: UpdateVehicleRequest,
    _: CurrentUser = StaffOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    vehicle = await VehicleService(db).update_vehicle(vehicle_id, request)
    return success_response({"vehicle": VehicleOut.model_validate(vehicle)}, "Vehicle updated")


@vehicle_router.patch("/{vehicle_id}/status")
async def update_vehicle_status(
    vehicle_id: UUID,
    request: UpdateVehicleStatusRequest,
    _: CurrentUser = StaffOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Set AVAILABLE, MAINTENANCE or OUT_OF_SERVICE on a vehicle without active bookings."""
    vehicle = await VehicleService(db).update_status(vehicle_id, request.status)
    return success_response({"vehicle": VehicleOut.model_validate(vehicle)}, "Vehicle status updated")


@vehicle_router.delete("/{vehicle_id}")
async def delete_vehicle(
    vehicle_id: UUID,
    _: CurrentUser = AdminOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    await VehicleService(db).delete_vehicle(vehicle_id)
    return success_response(message="Vehicle deleted")
