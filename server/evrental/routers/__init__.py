"""FastAPI routers package."""

from .auth import router as auth_router
from .booking import router as booking_router
from .contract import router as contract_router
from .document import router as document_router
from .health import router as health_router
from .inspection import router as inspection_router
from .inventory import station_router, vehicle_router
from .notification import router as notification_router
from .payment import router as payment_router
from .promotion import router as promotion_router
from .rental_history import router as rental_history_router
from .users import renter_router, staff_router

__all__ = [
    "auth_router",
    "booking_router",
    "contract_router",
    "document_router",
    "health_router",
    "inspection_router",
    "notification_router",
    "payment_router",
    "promotion_router",
    "rental_history_router",
    "renter_router",
    "staff_router",
    "station_router",
    "vehicle_router",
]
