"""Booking router for the rental lifecycle."""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import CurrentUser, RenterOnly, RequiredAuth, StaffOnly
from ..core.exceptions import ApiError
from ..core.responses import success_response
from ..core.timeutils import to_naive_utc
from ..models.booking import BookingStatus
from ..schemas.booking import (
    BookingAnalytics,
    BookingOut,
    CancelBookingRequest,
    CompleteBookingRequest,
    CreateBookingRequest,
)
from ..schemas.common import Pagination
from ..services.booking_service import BookingReceipt, BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bookings", tags=["bookings"])

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)


def _receipt_to_data(receipt: BookingReceipt) -> dict:
    """Booking plus the applied promotions and the price breakdown."""
    quote = receipt.quote
    return {
        "booking": BookingOut.model_validate(receipt.booking),
        "appliedPromotions": [
            {
                "id": promotion.id,
                "code": promotion.code,
                "discount": promotion.discount,
                "appliedDiscountAmount": amount,
            }
            for promotion, amount in receipt.promotions
        ],
        "pricingBreakdown": {
            "basePrice": quote.base_price,
            "insuranceAmount": quote.insurance_amount,
            "taxAmount": quote.tax_amount,
            "discountAmount": quote.discount_amount,
            "subtotal": quote.subtotal,
            "totalAmount": quote.total_amount,
            "depositAmount": quote.deposit_amount,
            "totalPayable": quote.total_payable,
            "duration": f"{quote.hours} hours",
        },
    }


def _page(bookings, page: int, limit: int, total: int) -> dict:
    return {
        "bookings": [BookingOut.model_validate(booking) for booking in bookings],
        "pagination": Pagination.build(page, limit, total),
    }


@router.post("", status_code=201)
async def create_booking(
    request: CreateBookingRequest,
    user: CurrentUser = RenterOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """
    Book a vehicle for [startTime, endTime).

    Fails with 409 VEHICLE_UNAVAILABLE or SLOT_CONFLICT when the vehicle
    cannot be booked for the period.
    """
    booking_service = BookingService(db)

    try:
        receipt = await booking_service.create_booking(user.id, request)
        return success_response(_receipt_to_data(receipt), "Booking created successfully", status_code=201)

    except ApiError:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in booking creation",
            extra={
                "renter_id": str(user.id),
                "vehicle_id": str(request.vehicle_id),
                "error": str(e)
            },
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/{booking_id}/complete")
async def complete_booking(
    booking_id: UUID,
    request: Optional[CompleteBookingRequest] = None,
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Complete a rental: the booking becomes COMPLETED and its vehicle AVAILABLE."""
    booking_service = BookingService(db)

    try:
        booking = await booking_service.complete_booking(user.id, booking_id, request)
        return success_response({"booking": BookingOut.model_validate(booking)}, "Booking completed successfully")

    except ApiError:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in booking completion",
            extra={"booking_id": str(booking_id), "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.get("")
async def list_bookings(
    status: Optional[BookingStatus] = None,
    user_id: Optional[UUID] = Query(None, alias="userId"),
    vehicle_id: Optional[UUID] = Query(None, alias="vehicleId"),
    station_id: Optional[UUID] = Query(None, alias="stationId"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    _: CurrentUser = StaffOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """List bookings with filters, newest first."""
    bookings, total = await BookingService(db).list_bookings(
        status=status,
        user_id=user_id,
        vehicle_id=vehicle_id,
        station_id=station_id,
        start_date=to_naive_utc(start_date) if start_date else None,
        end_date=to_naive_utc(end_date) if end_date else None,
        page=page,
        limit=limit,
    )
    return success_response(_page(bookings, page, limit, total))


@router.get("/analytics")
async def booking_analytics(
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    _: CurrentUser = StaffOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Booking counts, revenue and top vehicles and stations."""
    analytics = await BookingService(db).get_analytics(
        start_date=to_naive_utc(start_date) if start_date else None,
        end_date=to_naive_utc(end_date) if end_date else None,
    )
    return success_response(BookingAnalytics.model_validate(analytics))


@router.get("/user/{user_id}")
async def list_user_bookings(
    user_id: UUID,
    status: Optional[BookingStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """List the bookings of one user. Renters may only list their own."""
    bookings, total = await BookingService(db).list_user_bookings(user, user_id, status, page, limit)
    return success_response(_page(bookings, page, limit, total))


@router.get("/{booking_id}")
async def get_booking(
    booking_id: UUID,
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    booking_service = BookingService(db)
    booking = await booking_service.get_booking_by_id_or_raise(booking_id)
    booking_service.ensure_can_access(user, booking)
    return success_response({"booking": BookingOut.model_validate(booking)})


@router.patch("/{booking_id}/confirm")
async def confirm_booking(
    booking_id: UUID,
    _: CurrentUser = StaffOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Staff confirmation of a pending booking."""
    booking = await BookingService(db).confirm_booking(booking_id)
    return success_response({"booking": BookingOut.model_validate(booking)}, "Booking confirmed successfully")


@router.patch("/{booking_id}/cancel")
async def cancel_booking(
    booking_id: UUID,
    request: Optional[CancelBookingRequest] = None,
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Cancel a pending or confirmed booking and release its vehicle."""
    booking = await BookingService(db).cancel_booking(user, booking_id, request)
    return success_response({"booking": BookingOut.model_validate(booking)}, "Booking cancelled successfully")
