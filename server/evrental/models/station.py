"""Station model definition."""

from enum import Enum
from typing import TYPE_CHECKING, Optional
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, Float, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base, TimestampMixin

if TYPE_CHECKING:
    from .vehicle import Vehicle


class StationStatus(str, Enum):
    """Station status enumeration."""
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    MAINTENANCE = "MAINTENANCE"


class Station(TimestampMixin, Base):
    """Pickup and drop-off station."""

    __tablename__ = "stations"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    address: Mapped[str] = mapped_column(String(500), nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    contact_phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    status: Mapped[StationStatus] = mapped_column(String(20), nullable=False, default=StationStatus.ACTIVE)
    soft_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint("capacity >= 0", name="ck_station_capacity_non_negative"),
        CheckConstraint("latitude BETWEEN -90 AND 90", name="ck_station_latitude_range"),
        CheckConstraint("longitude BETWEEN -180 AND 180", name="ck_station_longitude_range"),
    )

    vehicles: Mapped[list["Vehicle"]] = relationship("Vehicle", back_populates="station")

    def __repr__(self) -> str:
        return f"<Station(id={self.id}, name='{self.name}', status={self.status})>"
