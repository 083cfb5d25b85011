"""Vehicle model definition."""

from enum import Enum
from typing import TYPE_CHECKING, Optional
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base, TimestampMixin

if TYPE_CHECKING:
    from .station import Station


class VehicleType(str, Enum):
    """Vehicle type enumeration."""
    CAR = "CAR"
    MOTORBIKE = "MOTORBIKE"
    SCOOTER = "SCOOTER"
    BIKE = "BIKE"


class VehicleStatus(str, Enum):
    """Vehicle status enumeration."""
    AVAILABLE = "AVAILABLE"
    RESERVED = "RESERVED"
    RENTED = "RENTED"
    MAINTENANCE = "MAINTENANCE"
    OUT_OF_SERVICE = "OUT_OF_SERVICE"


class Vehicle(TimestampMixin, Base):
    """Rentable electric vehicle parked at a station."""

    __tablename__ = "vehicles"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    station_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("stations.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    type: Mapped[VehicleType] = mapped_column(String(20), nullable=False, default=VehicleType.CAR)
    brand: Mapped[str] = mapped_column(String(100), nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    color: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    seats: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    license_plate: Mapped[Optional[str]] = mapped_column(String(20), nullable=True, unique=True)
    battery_level: Mapped[int] = mapped_column(Integer, nullable=False, default=100)

    # Prices in minor units
    hourly_rate: Mapped[int] = mapped_column(Integer, nullable=False)
    deposit_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    status: Mapped[VehicleStatus] = mapped_column(
        String(20),
        nullable=False,
        default=VehicleStatus.AVAILABLE,
        index=True
    )
    soft_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint("battery_level >= 0 AND battery_level <= 100", name="ck_vehicle_battery_range"),
        CheckConstraint("hourly_rate >= 0", name="ck_vehicle_hourly_rate_non_negative"),
        CheckConstraint("deposit_amount >= 0", name="ck_vehicle_deposit_non_negative"),
    )

    station: Mapped["Station"] = relationship("Station", back_populates="vehicles")

    def __repr__(self) -> str:
        return (
            f"<Vehicle(id={self.id}, brand='{self.brand}', model='{self.model}', "
            f"status={self.status}, station_id={self.station_id})>"
        )
