"""Notification service for in-app messages."""

import logging
from typing import Any, Optional, Sequence
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import atomic
from ..core.exceptions import NotFoundError
from ..core.timeutils import utcnow
from ..models.notification import Notification, NotificationType
from ..models.user import User
from ..schemas.registry import BroadcastNotificationRequest, CreateNotificationRequest

logger = logging.getLogger(__name__)


class NotificationService:
    """Service for notification-related operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def notify(
        self,
        user_id: UUID,
        type: NotificationType,
        title: str,
        message: str,
        data: Optional[dict[str, Any]] = None,
    ) -> Notification:
        """
        Queue a notification on the current session.

        Nothing is committed here: the notification is written by the
        caller's unit of work, together with the change it reports.
        """
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            data=data,
            is_read=False,
        )
        self.db.add(notification)
        return notification

    async def list_for_user(
        self,
        user_id: UUID,
        unread_only: bool = False,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[Sequence[Notification], int]:
        """List a user's notifications, newest first."""
        conditions = [Notification.user_id == user_id]
        if unread_only:
            conditions.append(Notification.is_read.is_(False))

        total = await self.db.scalar(select(func.count()).select_from(Notification).where(*conditions))
        result = await self.db.execute(
            select(Notification)
            .where(*conditions)
            .order_by(Notification.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return result.scalars().all(), total or 0

    async def unread_count(self, user_id: UUID) -> int:
        """Count unread notifications for a user."""
        count = await self.db.scalar(
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        )
        return count or 0

    async def _get_own_or_raise(self, user_id: UUID, notification_id: UUID) -> Notification:
        notification = await self.db.scalar(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
            )
        )
        if not notification:
            raise NotFoundError(resource_type="notification", resource_id=notification_id)
        return notification

    async def mark_read(self, user_id: UUID, notification_id: UUID) -> Notification:
        """Mark one of the user's notifications as read."""
        async with atomic(self.db):
            notification = await self._get_own_or_raise(user_id, notification_id)
            if not notification.is_read:
                notification.is_read = True
                notification.read_at = utcnow()
        return notification

    async def mark_all_read(self, user_id: UUID) -> int:
        """Mark every unread notification of the user as read. Returns the number updated."""
        async with atomic(self.db):
            result = await self.db.execute(
                update(Notification)
                .where(Notification.user_id == user_id, Notification.is_read.is_(False))
                .values(is_read=True, read_at=utcnow())
            )
        return result.rowcount or 0

    async def delete(self, user_id: UUID, notification_id: UUID) -> None:
        """Delete one of the user's notifications."""
        async with atomic(self.db):
            notification = await self._get_own_or_raise(user_id, notification_id)
            await self.db.delete(notification)

    async def delete_all(self, user_id: UUID) -> int:
        """Delete all notifications of the user. Returns the number deleted."""
        async with atomic(self.db):
            result = await self.db.execute(delete(Notification).where(Notification.user_id == user_id))
        return result.rowcount or 0

    async def create(self, request: CreateNotificationRequest) -> Notification:
        """Send a notification to a single user."""
        async with atomic(self.db):
            user = await self.db.get(User, request.user_id)
            if not user or user.soft_deleted:
                raise NotFoundError(resource_type="user", resource_id=request.user_id)
            notification = self.notify(
                user_id=user.id,
                type=request.type,
                title=request.title,
                message=request.message,
                data=request.data,
            )
        return notification

    async def broadcast(self, request: BroadcastNotificationRequest) -> int:
        """
        Send the same notification to several users.

        Unknown or deleted user ids are skipped. Returns the number of
        notifications created.
        """
        async with atomic(self.db):
            result = await self.db.execute(
                select(User.id).where(
                    User.id.in_(set(request.user_ids)),
                    User.soft_deleted.is_(False),
                )
            )
            recipients = result.scalars().all()
            for user_id in recipients:
                self.notify(
                    user_id=user_id,
                    type=request.type,
                    title=request.title,
                    message=request.message,
                    data=request.data,
                )

        logger.info(
            "Notification broadcast",
            extra={"requested": len(request.user_ids), "delivered": len(recipients)}
        )
        return len(recipients)
