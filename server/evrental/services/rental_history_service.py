"""Rental history service: finished rentals, their ratings and statistics."""

import logging
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import atomic
from ..core.dependencies import CurrentUser
from ..core.exceptions import AuthorizationError, NotFoundError
from ..models.booking import Booking, RentalHistory
from ..models.user import User
from ..schemas.booking import UpdateRentalHistoryRequest

logger = logging.getLogger(__name__)


class RentalHistoryService:
    """Service for reading and amending rental history records."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def ensure_can_access(actor: CurrentUser, history: RentalHistory) -> None:
        if not actor.is_staff and history.user_id != actor.id:
            raise AuthorizationError("You can only access your own rental history")

    async def get_history_by_id_or_raise(self, history_id: UUID) -> RentalHistory:
        history = await self.db.get(RentalHistory, history_id)
        if not history:
            raise NotFoundError(resource_type="rental history", resource_id=history_id)
        return history

    async def get_history(self, actor: CurrentUser, history_id: UUID) -> RentalHistory:
        """
        Get one record. Renters may only read their own.

        Raises:
            NotFoundError: If the record does not exist
            AuthorizationError: If a renter asks for another user's record
        """
        history = await self.get_history_by_id_or_raise(history_id)
        self.ensure_can_access(actor, history)
        return history

    async def get_history_for_booking(self, actor: CurrentUser, booking_id: UUID) -> RentalHistory:
        """
        Get the record written when a booking completed.

        Raises:
            NotFoundError: If the booking has no record, e.g. it has not completed
            AuthorizationError: If a renter asks for another user's record
        """
        history = await self.db.scalar(select(RentalHistory).where(RentalHistory.booking_id == booking_id))
        if not history:
            raise NotFoundError(
                resource_type="rental history",
                detail=f"No rental history found for booking {booking_id}",
            )
        self.ensure_can_access(actor, history)
        return history

    async def list_histories(
        self,
        user_id: Optional[UUID] = None,
        rating: Optional[int] = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[Sequence[RentalHistory], int]:
        """List records with optional filters, newest first."""
        conditions = []
        if user_id:
            conditions.append(RentalHistory.user_id == user_id)
        if rating:
            conditions.append(RentalHistory.rating == rating)

        total = await self.db.scalar(select(func.count()).select_from(RentalHistory).where(*conditions))
        result = await self.db.execute(
            select(RentalHistory)
            .where(*conditions)
            .order_by(RentalHistory.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return result.scalars().all(), total or 0

    async def list_user_histories(
        self,
        actor: CurrentUser,
        user_id: UUID,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[Sequence[RentalHistory], int]:
        """
        List one user's finished rentals.

        Raises:
            AuthorizationError: If a renter asks for another user's history
            NotFoundError: If the user does not exist
        """
        await self._ensure_user_visible(actor, user_id)
        return await self.list_histories(user_id=user_id, page=page, limit=limit)

    async def get_statistics(self, actor: CurrentUser, user_id: Optional[UUID] = None) -> dict:
        """
        Rental count, average rating, distance, spend and rating distribution.

        Staff see figures for everyone or for one user; renters only for themselves.

        Raises:
            AuthorizationError: If a renter asks for overall or another user's figures
            NotFoundError: If the user does not exist
        """
        if user_id is None and not actor.is_staff:
            user_id = actor.id
        if user_id is not None:
            await self._ensure_user_visible(actor, user_id)

        conditions = [RentalHistory.user_id == user_id] if user_id else []
        rated = [*conditions, RentalHistory.rating.is_not(None)]

        total_rentals = await self.db.scalar(select(func.count()).select_from(RentalHistory).where(*conditions))
        average_rating = await self.db.scalar(select(func.avg(RentalHistory.rating)).where(*rated))
        total_distance = await self.db.scalar(
            select(func.coalesce(func.sum(RentalHistory.distance), 0)).where(*conditions)
        )
        total_spent = await self.db.scalar(
            select(func.coalesce(func.sum(Booking.total_amount), 0))
            .join(RentalHistory, RentalHistory.booking_id == Booking.id)
            .where(*conditions)
        )
        distribution = await self.db.execute(
            select(RentalHistory.rating, func.count())
            .where(*rated)
            .group_by(RentalHistory.rating)
            .order_by(RentalHistory.rating)
        )

        return {
            "total_rentals": total_rentals or 0,
            "average_rating": round(float(average_rating or 0), 2),
            "total_distance": int(total_distance or 0),
            "total_spent": int(total_spent or 0),
            "rating_distribution": [{"rating": rating, "count": count} for rating, count in distribution.all()],
        }

    async def update_history(
        self,
        actor: CurrentUser,
        history_id: UUID,
        request: UpdateRentalHistoryRequest,
    ) -> RentalHistory:
        """
        Set the rating, feedback or distance of a record. Only fields present in the request change.

        Raises:
            NotFoundError: If the record does not exist
            AuthorizationError: If a renter edits another user's record
        """
        async with atomic(self.db):
            history = await self.get_history(actor, history_id)
            for field_name, value in request.model_dump(exclude_unset=True).items():
                setattr(history, field_name, value)

        logger.info(
            "Rental history updated",
            extra={
                "history_id": str(history_id),
                "actor_id": str(actor.id),
                "fields": sorted(request.model_fields_set),
            }
        )
        return history

    async def delete_history(self, history_id: UUID) -> RentalHistory:
        """
        Remove a record. Admin only; the booking itself is untouched.

        Raises:
            NotFoundError: If the record does not exist
        """
        async with atomic(self.db):
            history = await self.get_history_by_id_or_raise(history_id)
            await self.db.delete(history)

        logger.info(
            "Rental history deleted",
            extra={"history_id": str(history_id), "booking_id": str(history.booking_id)}
        )
        return history

    async def _ensure_user_visible(self, actor: CurrentUser, user_id: UUID) -> None:
        if not actor.is_staff and actor.id != user_id:
            raise AuthorizationError("You can only view your own rental history")

        user = await self.db.get(User, user_id)
        if not user or user.soft_deleted:
            raise NotFoundError(resource_type="user", resource_id=user_id)
