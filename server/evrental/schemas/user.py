"""User, authentication and directory schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from ..models.user import AccountStatus, UserRole
from .common import CamelModel

PHONE_PATTERN = r"^0\d{9}$"


class RegisterRequest(CamelModel):
    """Request schema for renter self-registration."""

    email: EmailStr = Field(..., description="Login e-mail, stored lower-cased")
    password: str = Field(..., min_length=8, max_length=72, description="Plain password")
    name: str = Field(..., min_length=2, max_length=255, description="Full name")
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN, description="Phone number, 0 followed by 9 digits")
    address: Optional[str] = Field(None, max_length=500, description="Postal address")

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()


class LoginRequest(CamelModel):
    """Request schema for login."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=72)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()


class ChangePasswordRequest(CamelModel):
    """Request schema for changing the signed-in user's password."""

    current_password: str = Field(..., min_length=1, max_length=72)
    new_password: str = Field(..., min_length=8, max_length=72)


class UpdateProfileRequest(CamelModel):
    """Request schema for profile updates."""

    name: Optional[str] = Field(None, min_length=2, max_length=255)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    address: Optional[str] = Field(None, max_length=500)


class UpdateAccountStatusRequest(CamelModel):
    """Request schema for suspending or reactivating a renter."""

    status: AccountStatus


class CreateStaffRequest(CamelModel):
    """Request schema for creating a staff account."""

    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    name: str = Field(..., min_length=2, max_length=255)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    station_id: Optional[UUID] = Field(None, description="Station the staff member works at")

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()


class AssignStationRequest(CamelModel):
    """Request schema for assigning staff to a station."""

    station_id: UUID


class UserOut(CamelModel):
    """User response schema. Never exposes the password hash."""

    id: UUID
    email: str
    name: str
    phone: Optional[str] = None
    address: Optional[str] = None
    role: UserRole
    account_status: AccountStatus
    station_id: Optional[UUID] = None
    created_at: datetime
