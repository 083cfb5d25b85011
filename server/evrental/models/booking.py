"""Booking and RentalHistory model definitions."""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base, TimestampMixin
from ..core.timeutils import utcnow

if TYPE_CHECKING:
    from .payment import Payment


class BookingStatus(str, Enum):
    """Booking status enumeration."""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


# Bookings in these statuses hold their vehicle for [start_time, end_time)
OCCUPYING_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)

# Bookings in these statuses block station and vehicle removal
ACTIVE_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS)


class Booking(TimestampMixin, Base):
    """Booking entity: a renter's claim on a vehicle for a time interval."""

    __tablename__ = "bookings"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    vehicle_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("vehicles.id", ondelete="RESTRICT"),
        nullable=False
    )
    station_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("stations.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    actual_end_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    status: Mapped[BookingStatus] = mapped_column(
        String(20),
        nullable=False,
        default=BookingStatus.PENDING,
        index=True
    )

    pickup_location: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    dropoff_location: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    return_odometer: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Pricing in minor units
    base_price: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    insurance_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tax_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    discount_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    deposit_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_booking_start_before_end"),
        CheckConstraint("total_amount >= 0", name="ck_booking_total_non_negative"),
        CheckConstraint("discount_amount >= 0", name="ck_booking_discount_non_negative"),
        # Serves the overlap lookup: vehicle, status, then interval bounds
        Index("ix_bookings_vehicle_status_period", "vehicle_id", "status", "start_time", "end_time"),
    )

    payments: Mapped[list["Payment"]] = relationship("Payment", back_populates="booking")

    @property
    def is_occupying(self) -> bool:
        return self.status in OCCUPYING_STATUSES

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, vehicle_id={self.vehicle_id}, status={self.status}, "
            f"start_time={self.start_time}, end_time={self.end_time})>"
        )


class RentalHistory(Base):
    """Record of a finished rental, written when its booking completes."""

    __tablename__ = "rental_histories"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    booking_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        unique=True
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    distance: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    rating: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    feedback: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("rating IS NULL OR (rating >= 1 AND rating <= 5)", name="ck_rental_history_rating_range"),
    )

    def __repr__(self) -> str:
        return f"<RentalHistory(id={self.id}, booking_id={self.booking_id}, rating={self.rating})>"
