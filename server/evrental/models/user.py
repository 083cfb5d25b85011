"""User model definitions."""

from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import Boolean, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base, TimestampMixin


class UserRole(str, Enum):
    """User role enumeration."""
    RENTER = "RENTER"
    STAFF = "STAFF"
    ADMIN = "ADMIN"


class AccountStatus(str, Enum):
    """Account status enumeration."""
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"


class User(TimestampMixin, Base):
    """User entity: renters, station staff and administrators."""

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    role: Mapped[UserRole] = mapped_column(String(20), nullable=False, default=UserRole.RENTER, index=True)
    account_status: Mapped[AccountStatus] = mapped_column(
        String(20),
        nullable=False,
        default=AccountStatus.ACTIVE
    )

    # Staff assignment
    station_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid,
        ForeignKey("stations.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    soft_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role={self.role})>"
