"""Station and vehicle schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from ..models.station import StationStatus
from ..models.vehicle import VehicleStatus, VehicleType
from .common import CamelModel


class CreateStationRequest(CamelModel):
    """Request schema for creating a station."""

    name: str = Field(..., min_length=2, max_length=255)
    address: str = Field(..., min_length=3, max_length=500)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    capacity: int = Field(0, ge=0, description="Number of parking slots")
    contact_phone: Optional[str] = Field(None, max_length=20)
    status: StationStatus = StationStatus.ACTIVE


class UpdateStationRequest(CamelModel):
    """Request schema for updating a station. Only provided fields change."""

    name: Optional[str] = Field(None, min_length=2, max_length=255)
    address: Optional[str] = Field(None, min_length=3, max_length=500)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    capacity: Optional[int] = Field(None, ge=0)
    contact_phone: Optional[str] = Field(None, max_length=20)
    status: Optional[StationStatus] = None


class StationOut(CamelModel):
    """Station response schema."""

    id: UUID
    name: str
    address: str
    latitude: float
    longitude: float
    capacity: int
    contact_phone: Optional[str] = None
    status: StationStatus
    created_at: datetime


class NearbyStationOut(StationOut):
    """Station with its distance from the search point."""

    distance_km: float


class CreateVehicleRequest(CamelModel):
    """Request schema for adding a vehicle to the fleet."""

    station_id: UUID
    type: VehicleType = VehicleType.CAR
    brand: str = Field(..., min_length=1, max_length=100)
    model: str = Field(..., min_length=1, max_length=100)
    year: Optional[int] = Field(None, ge=1990, le=2100)
    color: Optional[str] = Field(None, max_length=50)
    seats: Optional[int] = Field(None, ge=1, le=50)
    license_plate: Optional[str] = Field(None, min_length=3, max_length=20)
    battery_level: int = Field(100, ge=0, le=100)
    hourly_rate: int = Field(..., ge=0, description="Price per started hour in minor units")
    deposit_amount: int = Field(0, ge=0, description="Deposit in minor units")


class UpdateVehicleRequest(CamelModel):
    """Request schema for updating vehicle details. Status has its own endpoint."""

    station_id: Optional[UUID] = None
    type: Optional[VehicleType] = None
    brand: Optional[str] = Field(None, min_length=1, max_length=100)
    model: Optional[str] = Field(None, min_length=1, max_length=100)
    year: Optional[int] = Field(None, ge=1990, le=2100)
    color: Optional[str] = Field(None, max_length=50)
    seats: Optional[int] = Field(None, ge=1, le=50)
    license_plate: Optional[str] = Field(None, min_length=3, max_length=20)
    battery_level: Optional[int] = Field(None, ge=0, le=100)
    hourly_rate: Optional[int] = Field(None, ge=0)
    deposit_amount: Optional[int] = Field(None, ge=0)


class UpdateVehicleStatusRequest(CamelModel):
    """Request schema for maintenance status changes."""

    status: VehicleStatus


class VehicleOut(CamelModel):
    """Vehicle response schema."""

    id: UUID
    station_id: UUID
    type: VehicleType
    brand: str
    model: str
    year: Optional[int] = None
    color: Optional[str] = None
    seats: Optional[int] = None
    license_plate: Optional[str] = None
    battery_level: int
    hourly_rate: int
    deposit_amount: int
    status: VehicleStatus
    created_at: datetime
