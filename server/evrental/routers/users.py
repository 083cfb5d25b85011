"""Renter and staff directory router."""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import AdminOnly, CurrentUser, RequiredAuth, StaffOnly
from ..core.exceptions import AuthorizationError
from ..core.responses import success_response
from ..models.user import AccountStatus, UserRole
from ..schemas.common import Pagination
from ..schemas.user import (
    AssignStationRequest,
    CreateStaffRequest,
    UpdateAccountStatusRequest,
    UpdateProfileRequest,
    UserOut,
)
from ..services.user_service import STAFF_DIRECTORY_ROLES, UserService

logger = logging.getLogger(__name__)

renter_router = APIRouter(prefix="/api/renters", tags=["renters"])
staff_router = APIRouter(prefix="/api/staff", tags=["staff"])

DB_DEPENDENCY = Depends(get_db)


def _ensure_self_or_staff(user: CurrentUser, renter_id: UUID) -> None:
    if not user.is_staff and user.id != renter_id:
        raise AuthorizationError("You can only access your own profile")


# Renters

@renter_router.get("")
async def list_renters(
    search: Optional[str] = Query(None, max_length=100),
    status: Optional[AccountStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    _: CurrentUser = StaffOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    renters, total = await UserService(db).list_renters(search, status, page, limit)
    return success_response({
        "renters": [UserOut.model_validate(renter) for renter in renters],
        "pagination": Pagination.build(page, limit, total),
    })


@renter_router.get("/{renter_id}")
async def get_renter(
    renter_id: UUID,
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    _ensure_self_or_staff(user, renter_id)
    renter = await UserService(db).get_user_by_id_or_raise(renter_id, roles=(UserRole.RENTER,))
    return success_response({"renter": UserOut.model_validate(renter)})


@renter_router.put("/{renter_id}")
async def update_renter(
    renter_id: UUID,
    request: UpdateProfileRequest,
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    _ensure_self_or_staff(user, renter_id)
    service = UserService(db)
    await service.get_user_by_id_or_raise(renter_id, roles=(UserRole.RENTER,))
    renter = await service.update_profile(renter_id, request)
    return success_response({"renter": UserOut.model_validate(renter)}, "Profile updated")


@renter_router.patch("/{renter_id}/status")
async def set_renter_status(
    renter_id: UUID,
    request: UpdateAccountStatusRequest,
    _: CurrentUser = StaffOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Suspend or reactivate a renter."""
    renter = await UserService(db).set_renter_status(renter_id, request.status)
    return success_response({"renter": UserOut.model_validate(renter)}, "Account status updated")


@renter_router.delete("/{renter_id}")
async def delete_renter(
    renter_id: UUID,
    _: CurrentUser = StaffOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    await UserService(db).delete_user(renter_id, roles=(UserRole.RENTER,))
    return success_response(message="Renter deleted")


# Staff

@staff_router.post("", status_code=201)
async def create_staff(
    request: CreateStaffRequest,
    _: CurrentUser = AdminOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    staff = await UserService(db).create_staff(request)
    return success_response({"staff": UserOut.model_validate(staff)}, "Staff created", status_code=201)


@staff_router.get("")
async def list_staff(
    search: Optional[str] = Query(None, max_length=100),
    station_id: Optional[UUID] = Query(None, alias="stationId"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    _: CurrentUser = AdminOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    staff, total = await UserService(db).list_staff(search, station_id, page, limit)
    return success_response({
        "staff": [UserOut.model_validate(member) for member in staff],
        "pagination": Pagination.build(page, limit, total),
    })


@staff_router.get("/{staff_id}")
async def get_staff(
    staff_id: UUID,
    _: CurrentUser = AdminOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    staff = await UserService(db).get_user_by_id_or_raise(staff_id, roles=STAFF_DIRECTORY_ROLES)
    return success_response({"staff": UserOut.model_validate(staff)})


@staff_router.patch("/{staff_id}/station")
async def assign_station(
    staff_id: UUID,
    request: AssignStationRequest,
    _: CurrentUser = AdminOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    staff = await UserService(db).assign_station(staff_id, request.station_id)
    return success_response({"staff": UserOut.model_validate(staff)}, "Station assigned")


@staff_router.delete("/{staff_id}")
async def delete_staff(
    staff_id: UUID,
    _: CurrentUser = AdminOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    await UserService(db).delete_user(staff_id, roles=(UserRole.STAFF,))
    return success_response(message="Staff deleted")
