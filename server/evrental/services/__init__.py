"""Service layer package."""

from .auth_service import AuthService
from .booking_service import BookingService
from .contract_service import ContractService
from .document_service import DocumentService
from .inspection_service import InspectionService
from .notification_service import NotificationService
from .payment_gateway import PaymentGateway
from .payment_service import PaymentService
from .promotion_service import PromotionService
from .rental_history_service import RentalHistoryService
from .station_service import StationService
from .user_service import UserService
from .vehicle_service import VehicleService

__all__ = [
    "AuthService",
    "BookingService",
    "ContractService",
    "DocumentService",
    "InspectionService",
    "NotificationService",
    "PaymentGateway",
    "PaymentService",
    "PromotionService",
    "RentalHistoryService",
    "StationService",
    "UserService",
    "VehicleService",
]
