"""Promotion and PromotionBooking model definitions."""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base, TimestampMixin


class Promotion(TimestampMixin, Base):
    """Discount code valid within a time window."""

    __tablename__ = "promotions"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Fraction of the base price, 0.15 means 15 % off
    discount: Mapped[float] = mapped_column(Float, nullable=False)
    valid_from: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    valid_until: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        CheckConstraint("discount > 0 AND discount <= 1", name="ck_promotion_discount_range"),
        CheckConstraint("valid_from < valid_until", name="ck_promotion_window"),
    )

    def is_active_at(self, moment: datetime) -> bool:
        return self.valid_from <= moment <= self.valid_until

    def __repr__(self) -> str:
        return f"<Promotion(id={self.id}, code='{self.code}', discount={self.discount})>"


class PromotionBooking(Base):
    """A promotion applied to a booking, with the amount it took off."""

    __tablename__ = "promotion_bookings"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    promotion_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("promotions.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    booking_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    discount_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("promotion_id", "booking_id", name="uq_promotion_booking"),
    )
