"""Schemas for promotions, documents, contracts, inspections and notifications."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import Field, field_validator, model_validator

from ..models.contract import ContractStatus
from ..models.document import DocumentStatus, DocumentType
from ..models.inspection import InspectionType
from ..models.notification import NotificationType
from .common import CamelModel, UtcDatetime


# Promotions

class CreatePromotionRequest(CamelModel):
    """Request schema for creating a promotion."""

    code: str = Field(..., min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_-]+$")
    description: Optional[str] = Field(None, max_length=500)
    discount: float = Field(..., gt=0, le=1, description="Fraction of the base price, 0.15 = 15 %")
    valid_from: UtcDatetime
    valid_until: UtcDatetime

    @field_validator("code")
    @classmethod
    def upper_code(cls, v: str) -> str:
        return v.upper()

    @model_validator(mode="after")
    def check_window(self) -> "CreatePromotionRequest":
        if self.valid_from >= self.valid_until:
            raise ValueError("validUntil must be after validFrom")
        return self


class UpdatePromotionRequest(CamelModel):
    """Request schema for updating a promotion. The window is re-checked in the service."""

    code: Optional[str] = Field(None, min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_-]+$")
    description: Optional[str] = Field(None, max_length=500)
    discount: Optional[float] = Field(None, gt=0, le=1)
    valid_from: Optional[UtcDatetime] = None
    valid_until: Optional[UtcDatetime] = None

    @field_validator("code")
    @classmethod
    def upper_code(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v


class PromotionOut(CamelModel):
    """Promotion response schema."""

    id: UUID
    code: str
    description: Optional[str] = None
    discount: float
    valid_from: datetime
    valid_until: datetime
    created_at: datetime


# Documents

class SubmitDocumentRequest(CamelModel):
    """Request schema for submitting an identity document."""

    document_type: DocumentType
    file_url: str = Field(..., min_length=1, max_length=1000, description="URL returned by the upload service")
    document_number: Optional[str] = Field(None, max_length=100)
    expiry_date: Optional[UtcDatetime] = None


class VerifyDocumentRequest(CamelModel):
    """Request schema for approving or rejecting a document."""

    status: DocumentStatus
    rejection_reason: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def check_decision(self) -> "VerifyDocumentRequest":
        if self.status == DocumentStatus.PENDING:
            raise ValueError("status must be APPROVED or REJECTED")
        if self.status == DocumentStatus.REJECTED and not self.rejection_reason:
            raise ValueError("rejectionReason is required when rejecting a document")
        return self


class DocumentOut(CamelModel):
    """Document response schema."""

    id: UUID
    user_id: UUID
    document_type: DocumentType
    document_number: Optional[str] = None
    expiry_date: Optional[datetime] = None
    file_url: str
    status: DocumentStatus
    rejection_reason: Optional[str] = None
    verified_by: Optional[UUID] = None
    verified_at: Optional[datetime] = None
    created_at: datetime


# Contracts

class CreateContractRequest(CamelModel):
    """Request schema for drawing up a contract for a confirmed booking."""

    booking_id: UUID
    renter_name: Optional[str] = Field(None, max_length=255)
    witness_name: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = Field(None, max_length=1000)


class UploadSignedContractRequest(CamelModel):
    """Request schema for attaching the signed contract scan."""

    signed_file_url: str = Field(..., min_length=1, max_length=1000)
    renter_name: Optional[str] = Field(None, max_length=255)
    witness_name: Optional[str] = Field(None, max_length=255)


class ContractOut(CamelModel):
    """Contract response schema."""

    id: UUID
    booking_id: UUID
    contract_number: str
    status: ContractStatus
    renter_name: Optional[str] = None
    witness_name: Optional[str] = None
    notes: Optional[str] = None
    signed_file_url: Optional[str] = None
    signed_at: Optional[datetime] = None
    created_at: datetime


# Inspections

class CreateInspectionRequest(CamelModel):
    """Request schema for recording a vehicle inspection."""

    vehicle_id: UUID
    booking_id: Optional[UUID] = None
    inspection_type: InspectionType
    battery_level: Optional[int] = Field(None, ge=0, le=100)
    exterior_condition: Optional[str] = Field(None, max_length=255)
    interior_condition: Optional[str] = Field(None, max_length=255)
    tire_condition: Optional[str] = Field(None, max_length=255)
    mileage: Optional[int] = Field(None, ge=0)
    damage_notes: Optional[str] = Field(None, max_length=1000)
    notes: Optional[str] = Field(None, max_length=1000)
    image_urls: list[str] = Field(default_factory=list, max_length=20)
    document_verified: bool = False
    is_completed: bool = False


class UpdateInspectionRequest(CamelModel):
    """Request schema for amending an inspection."""

    battery_level: Optional[int] = Field(None, ge=0, le=100)
    exterior_condition: Optional[str] = Field(None, max_length=255)
    interior_condition: Optional[str] = Field(None, max_length=255)
    tire_condition: Optional[str] = Field(None, max_length=255)
    mileage: Optional[int] = Field(None, ge=0)
    damage_notes: Optional[str] = Field(None, max_length=1000)
    notes: Optional[str] = Field(None, max_length=1000)
    image_urls: Optional[list[str]] = Field(None, max_length=20)
    document_verified: Optional[bool] = None
    is_completed: Optional[bool] = None


class InspectionOut(CamelModel):
    """Inspection response schema."""

    id: UUID
    vehicle_id: UUID
    booking_id: Optional[UUID] = None
    staff_id: UUID
    inspection_type: InspectionType
    battery_level: Optional[int] = None
    exterior_condition: Optional[str] = None
    interior_condition: Optional[str] = None
    tire_condition: Optional[str] = None
    mileage: Optional[int] = None
    damage_notes: Optional[str] = None
    notes: Optional[str] = None
    image_urls: list[str]
    document_verified: bool
    is_completed: bool
    created_at: datetime


class InspectionStats(CamelModel):
    """Inspection counts by type and completion."""

    total: int
    by_type: dict[str, int]
    completed: int
    pending: int


# Notifications

class CreateNotificationRequest(CamelModel):
    """Request schema for an admin notification to one user."""

    user_id: UUID
    type: NotificationType = NotificationType.SYSTEM
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1, max_length=2000)
    data: Optional[dict[str, Any]] = None


class BroadcastNotificationRequest(CamelModel):
    """Request schema for sending the same notification to many users."""

    user_ids: list[UUID] = Field(..., min_length=1, max_length=100)
    type: NotificationType = NotificationType.SYSTEM
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1, max_length=2000)
    data: Optional[dict[str, Any]] = None


class NotificationOut(CamelModel):
    """Notification response schema."""

    id: UUID
    user_id: UUID
    type: NotificationType
    title: str
    message: str
    data: Optional[dict[str, Any]] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime
