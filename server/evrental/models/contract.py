"""Rental contract model definition."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base, TimestampMixin


class ContractStatus(str, Enum):
    """Contract status enumeration."""
    CREATED = "CREATED"
    COMPLETED = "COMPLETED"


class RentalContract(TimestampMixin, Base):
    """Paper contract signed at pickup for a confirmed booking."""

    __tablename__ = "rental_contracts"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    booking_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    contract_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    status: Mapped[ContractStatus] = mapped_column(String(20), nullable=False, default=ContractStatus.CREATED)
    renter_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    witness_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    signed_file_url: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    signed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_by: Mapped[Optional[UUID]] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    def __repr__(self) -> str:
        return f"<RentalContract(id={self.id}, number='{self.contract_number}', status={self.status})>"
