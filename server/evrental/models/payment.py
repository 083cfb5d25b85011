"""Payment model definition."""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base, TimestampMixin

if TYPE_CHECKING:
    from .booking import Booking


class PaymentMethod(str, Enum):
    """Payment method enumeration."""
    CASH = "CASH"
    GATEWAY = "GATEWAY"


class PaymentType(str, Enum):
    """What a payment is for."""
    DEPOSIT = "DEPOSIT"
    RENTAL_FEE = "RENTAL_FEE"
    LATE_FEE = "LATE_FEE"
    DAMAGE_FEE = "DAMAGE_FEE"
    EXTENSION_FEE = "EXTENSION_FEE"


class PaymentStatus(str, Enum):
    """Payment status enumeration."""
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    PARTIALLY_REFUNDED = "PARTIALLY_REFUNDED"


REFUNDABLE_STATUSES = (PaymentStatus.PAID, PaymentStatus.PARTIALLY_REFUNDED)


class Payment(TimestampMixin, Base):
    """A cash or gateway payment attempt against a booking."""

    __tablename__ = "payments"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    booking_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("bookings.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    # Amounts in minor units
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    refund_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    method: Mapped[PaymentMethod] = mapped_column(String(20), nullable=False)
    payment_type: Mapped[PaymentType] = mapped_column(String(20), nullable=False, default=PaymentType.RENTAL_FEE)
    status: Mapped[PaymentStatus] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentStatus.PENDING,
        index=True
    )

    transaction_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    checkout_url: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    refund_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payment_amount_positive"),
        CheckConstraint("refund_amount >= 0", name="ck_payment_refund_non_negative"),
        CheckConstraint("refund_amount <= amount", name="ck_payment_refund_lte_amount"),
        CheckConstraint(
            "status <> 'REFUNDED' OR refund_amount = amount",
            name="ck_payment_refunded_is_full"
        ),
    )

    booking: Mapped["Booking"] = relationship("Booking", back_populates="payments")

    def __repr__(self) -> str:
        return (
            f"<Payment(id={self.id}, booking_id={self.booking_id}, amount={self.amount}, "
            f"method={self.method}, status={self.status})>"
        )
