"""Rental history router: finished rentals, ratings and statistics."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import AdminOnly, CurrentUser, RequiredAuth, StaffOnly
from ..core.responses import success_response
from ..schemas.booking import RentalHistoryOut, RentalStatistics, UpdateRentalHistoryRequest
from ..schemas.common import Pagination
from ..services.rental_history_service import RentalHistoryService

router = APIRouter(prefix="/api/rental-histories", tags=["rental-histories"])

DB_DEPENDENCY = Depends(get_db)


def _page(histories, page: int, limit: int, total: int) -> dict:
    return {
        "rentalHistories": [RentalHistoryOut.model_validate(history) for history in histories],
        "pagination": Pagination.build(page, limit, total),
    }


@router.get("")
async def list_rental_histories(
    user_id: Optional[UUID] = Query(None, alias="userId"),
    rating: Optional[int] = Query(None, ge=1, le=5),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    _: CurrentUser = StaffOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """List finished rentals, newest first."""
    histories, total = await RentalHistoryService(db).list_histories(user_id, rating, page, limit)
    return success_response(_page(histories, page, limit, total))


@router.get("/statistics")
async def rental_statistics(
    user_id: Optional[UUID] = Query(None, alias="userId"),
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Rental figures. Renters get their own; staff get everyone's unless userId is given."""
    statistics = await RentalHistoryService(db).get_statistics(user, user_id)
    return success_response({"statistics": RentalStatistics.model_validate(statistics)})


@router.get("/user/{user_id}")
async def list_user_rental_histories(
    user_id: UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    histories, total = await RentalHistoryService(db).list_user_histories(user, user_id, page, limit)
    return success_response(_page(histories, page, limit, total))


@router.get("/booking/{booking_id}")
async def get_rental_history_for_booking(
    booking_id: UUID,
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    history = await RentalHistoryService(db).get_history_for_booking(user, booking_id)
    return success_response({"rentalHistory": RentalHistoryOut.model_validate(history)})


@router.get("/{history_id}")
async def get_rental_history(
    history_id: UUID,
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    history = await RentalHistoryService(db).get_history(user, history_id)
    return success_response({"rentalHistory": RentalHistoryOut.model_validate(history)})


@router.put("/{history_id}")
async def update_rental_history(
    history_id: UUID,
    request: UpdateRentalHistoryRequest,
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Rate a finished rental or correct its feedback and distance."""
    history = await RentalHistoryService(db).update_history(user, history_id, request)
    return success_response(
        {"rentalHistory": RentalHistoryOut.model_validate(history)}, "Rental history updated successfully"
    )


@router.delete("/{history_id}")
async def delete_rental_history(
    history_id: UUID,
    _: CurrentUser = AdminOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    history = await RentalHistoryService(db).delete_history(history_id)
    return success_response(
        {"deletedHistory": {"id": history.id, "bookingId": history.booking_id}},
        "Rental history deleted successfully",
    )
