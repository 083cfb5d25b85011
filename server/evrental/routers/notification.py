"""Notification router."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import AdminOnly, CurrentUser, RequiredAuth
from ..core.responses import success_response
from ..schemas.common import Pagination
from ..schemas.registry import BroadcastNotificationRequest, CreateNotificationRequest, NotificationOut
from ..services.notification_service import NotificationService

router = APIRouter(prefix="/api/notifications", tags=["notifications"])

DB_DEPENDENCY = Depends(get_db)


@router.get("")
async def list_notifications(
    unread_only: bool = Query(False, alias="unreadOnly"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    notifications, total = await NotificationService(db).list_for_user(user.id, unread_only, page, limit)
    return success_response({
        "notifications": [NotificationOut.model_validate(notification) for notification in notifications],
        "pagination": Pagination.build(page, limit, total),
    })


@router.get("/unread-count")
async def unread_count(user: CurrentUser = RequiredAuth, db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
    return success_response({"count": await NotificationService(db).unread_count(user.id)})


@router.patch("/read-all")
async def mark_all_read(user: CurrentUser = RequiredAuth, db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
    updated = await NotificationService(db).mark_all_read(user.id)
    return success_response({"updated": updated})


@router.patch("/{notification_id}/read")
async def mark_read(
    notification_id: UUID,
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    notification = await NotificationService(db).mark_read(user.id, notification_id)
    return success_response({"notification": NotificationOut.model_validate(notification)})


@router.delete("")
async def delete_all(user: CurrentUser = RequiredAuth, db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
    deleted = await NotificationService(db).delete_all(user.id)
    return success_response({"deleted": deleted})


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: UUID,
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    await NotificationService(db).delete(user.id, notification_id)
    return success_response(message="Notification deleted")


@router.post("", status_code=201)
async def create_notification(
    request: CreateNotificationRequest,
    _: CurrentUser = AdminOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    notification = await NotificationService(db).create(request)
    return success_response(
        {"notification": NotificationOut.model_validate(notification)},
        "Notification sent",
        status_code=201,
    )


@router.post("/broadcast", status_code=201)
async def broadcast(
    request: BroadcastNotificationRequest,
    _: CurrentUser = AdminOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Send one notification to up to 100 users; unknown ids are skipped."""
    delivered = await NotificationService(db).broadcast(request)
    return success_response({"delivered": delivered}, "Notification broadcast", status_code=201)
