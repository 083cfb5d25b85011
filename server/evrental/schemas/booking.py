"""Booking-related Pydantic schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field, model_validator

from ..models.booking import BookingStatus
from .common import CamelModel, UtcDatetime


class CreateBookingRequest(CamelModel):
    """Request schema for creating a booking."""

    vehicle_id: UUID = Field(..., description="Vehicle to book")
    station_id: UUID = Field(..., description="Pickup station")
    start_time: UtcDatetime = Field(..., description="Rental start (ISO 8601)")
    end_time: UtcDatetime = Field(..., description="Rental end (ISO 8601), exclusive")
    pickup_location: str = Field(..., min_length=3, max_length=200)
    dropoff_location: Optional[str] = Field(None, min_length=3, max_length=200)
    promotion_codes: list[str] = Field(default_factory=list, max_length=5)

    @model_validator(mode="after")
    def check_interval(self) -> "CreateBookingRequest":
        if self.start_time >= self.end_time:
            raise ValueError("endTime must be after startTime")
        return self


class CompleteBookingRequest(CamelModel):
    """Optional return details recorded when a booking completes."""

    battery_level: Optional[int] = Field(None, ge=0, le=100, description="Battery level at return")
    return_odometer: Optional[int] = Field(None, ge=0, description="Odometer reading at return")
    rating: Optional[int] = Field(None, ge=1, le=5, description="Renter's rating of the rental")
    notes: Optional[str] = Field(None, max_length=500)


class CancelBookingRequest(CamelModel):
    """Request schema for cancelling a booking."""

    reason: Optional[str] = Field(None, min_length=5, max_length=500)


class BookingOut(CamelModel):
    """Booking response schema."""

    id: UUID
    user_id: UUID
    vehicle_id: UUID
    station_id: UUID
    start_time: datetime
    end_time: datetime
    actual_end_time: Optional[datetime] = None
    status: BookingStatus
    pickup_location: Optional[str] = None
    dropoff_location: Optional[str] = None
    return_odometer: Optional[int] = None
    notes: Optional[str] = None
    base_price: int
    insurance_amount: int
    tax_amount: int
    discount_amount: int
    total_amount: int
    deposit_amount: int
    created_at: datetime
    updated_at: datetime


class CountByKey(CamelModel):
    """Booking count grouped by a vehicle or station."""

    id: UUID
    booking_count: int


class BookingAnalytics(CamelModel):
    """Aggregate booking figures for a period."""

    total_bookings: int
    by_status: dict[str, int]
    total_revenue: int
    top_vehicles: list[CountByKey]
    top_stations: list[CountByKey]


class RentalHistoryOut(CamelModel):
    """Rental history response schema."""

    id: UUID
    booking_id: UUID
    user_id: UUID
    distance: Optional[int] = None
    rating: Optional[int] = None
    feedback: Optional[str] = None
    created_at: datetime


class UpdateRentalHistoryRequest(CamelModel):
    """Request schema for rating a finished rental or correcting its record."""

    distance: Optional[int] = Field(None, ge=0, description="Distance driven")
    rating: Optional[int] = Field(None, ge=1, le=5)
    feedback: Optional[str] = Field(None, min_length=1, max_length=1000)

    @model_validator(mode="after")
    def check_not_empty(self) -> "UpdateRentalHistoryRequest":
        if not self.model_fields_set:
            raise ValueError("No valid fields provided for update")
        return self


class RatingCount(CamelModel):
    rating: int
    count: int


class RentalStatistics(CamelModel):
    """Aggregate rental figures, for everyone or for one user."""

    total_rentals: int
    average_rating: float
    total_distance: int
    total_spent: int
    rating_distribution: list[RatingCount]
