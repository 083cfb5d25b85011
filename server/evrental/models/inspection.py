"""Vehicle inspection model definition."""

from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, CheckConstraint, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base, TimestampMixin


class InspectionType(str, Enum):
    """Inspection type enumeration."""
    CHECK_IN = "CHECK_IN"
    CHECK_OUT = "CHECK_OUT"


class VehicleInspection(TimestampMixin, Base):
    """Condition report recorded by staff when a vehicle is handed over or returned."""

    __tablename__ = "vehicle_inspections"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    vehicle_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("vehicles.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    booking_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid,
        ForeignKey("bookings.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    staff_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    inspection_type: Mapped[InspectionType] = mapped_column(String(20), nullable=False)
    battery_level: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    exterior_condition: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    interior_condition: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    tire_condition: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    mileage: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    damage_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_urls: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    document_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint(
            "battery_level IS NULL OR (battery_level >= 0 AND battery_level <= 100)",
            name="ck_inspection_battery_range"
        ),
        CheckConstraint("mileage IS NULL OR mileage >= 0", name="ck_inspection_mileage_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"<VehicleInspection(id={self.id}, vehicle_id={self.vehicle_id}, "
            f"type={self.inspection_type}, completed={self.is_completed})>"
        )
