"""Models module exporting all database models."""

from .booking import ACTIVE_STATUSES, OCCUPYING_STATUSES, Booking, BookingStatus, RentalHistory
from .contract import ContractStatus, RentalContract
from .document import DocumentStatus, DocumentType, UserDocument
from .inspection import InspectionType, VehicleInspection
from .notification import Notification, NotificationType
from .payment import Payment, PaymentMethod, PaymentStatus, PaymentType
from .promotion import Promotion, PromotionBooking
from .station import Station, StationStatus
from .user import AccountStatus, User, UserRole
from .vehicle import Vehicle, VehicleStatus, VehicleType

__all__ = [
    # Identity
    "User",
    "UserRole",
    "AccountStatus",

    # Inventory
    "Station",
    "StationStatus",
    "Vehicle",
    "VehicleStatus",
    "VehicleType",

    # Booking lifecycle
    "Booking",
    "BookingStatus",
    "OCCUPYING_STATUSES",
    "ACTIVE_STATUSES",
    "RentalHistory",

    # Payments
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "PaymentType",

    # Supporting registries
    "Promotion",
    "PromotionBooking",
    "UserDocument",
    "DocumentType",
    "DocumentStatus",
    "RentalContract",
    "ContractStatus",
    "VehicleInspection",
    "InspectionType",
    "Notification",
    "NotificationType",
]
