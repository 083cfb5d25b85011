"""Promotion service."""

import logging
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import atomic
from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from ..core.timeutils import utcnow
from ..models.promotion import Promotion, PromotionBooking
from ..schemas.registry import CreatePromotionRequest, UpdatePromotionRequest

logger = logging.getLogger(__name__)


class PromotionService:
    """Service for promotion-related operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_promotion_by_id_or_raise(self, promotion_id: UUID) -> Promotion:
        promotion = await self.db.get(Promotion, promotion_id)
        if not promotion:
            raise NotFoundError(resource_type="promotion", resource_id=promotion_id)
        return promotion

    async def get_promotion_by_code(self, code: str) -> Promotion:
        """Look up a promotion by code, case-insensitively."""
        promotion = await self.db.scalar(select(Promotion).where(Promotion.code == code.upper()))
        if not promotion:
            raise NotFoundError(resource_type="promotion", resource_id=code.upper())
        return promotion

    async def list_promotions(self, page: int = 1, limit: int = 20) -> tuple[Sequence[Promotion], int]:
        """All promotions, newest first."""
        total = await self.db.scalar(select(func.count()).select_from(Promotion))
        result = await self.db.execute(
            select(Promotion).order_by(Promotion.created_at.desc()).offset((page - 1) * limit).limit(limit)
        )
        return result.scalars().all(), total or 0

    async def list_active(self) -> Sequence[Promotion]:
        """Promotions whose validity window contains the current time."""
        now = utcnow()
        result = await self.db.execute(
            select(Promotion)
            .where(Promotion.valid_from <= now, Promotion.valid_until >= now)
            .order_by(Promotion.valid_until)
        )
        return result.scalars().all()

    async def _ensure_code_free(self, code: str, promotion_id: Optional[UUID] = None) -> None:
        stmt = select(Promotion.id).where(Promotion.code == code)
        if promotion_id:
            stmt = stmt.where(Promotion.id != promotion_id)
        if await self.db.scalar(stmt):
            raise ConflictError(
                detail=f"Promotion code {code} already exists",
                code="DUPLICATE_PROMOTION_CODE",
                conflicting_resource={"code": code}
            )

    async def create_promotion(self, request: CreatePromotionRequest) -> Promotion:
        """
        Create a promotion.

        Raises:
            ConflictError: If the code is taken
        """
        async with atomic(self.db):
            await self._ensure_code_free(request.code)
            promotion = Promotion(**request.model_dump())
            self.db.add(promotion)

        logger.info("Promotion created", extra={"promotion_id": str(promotion.id), "code": promotion.code})
        return promotion

    async def update_promotion(self, promotion_id: UUID, request: UpdatePromotionRequest) -> Promotion:
        """
        Update the provided fields of a promotion.

        Raises:
            NotFoundError: If the promotion does not exist
            ConflictError: If the new code is taken
            ValidationError: If the resulting window is empty
        """
        changes = request.model_dump(exclude_unset=True)

        async with atomic(self.db):
            promotion = await self.get_promotion_by_id_or_raise(promotion_id)
            if changes.get("code"):
                await self._ensure_code_free(changes["code"], promotion_id)

            valid_from = changes.get("valid_from") or promotion.valid_from
            valid_until = changes.get("valid_until") or promotion.valid_until
            if valid_from >= valid_until:
                raise ValidationError(
                    "validUntil must be after validFrom",
                    violations=[{"path": "validUntil", "message": "must be after validFrom"}],
                )

            for field, value in changes.items():
                if value is not None:
                    setattr(promotion, field, value)

        logger.info("Promotion updated", extra={"promotion_id": str(promotion_id), "fields": sorted(changes)})
        return promotion

    async def delete_promotion(self, promotion_id: UUID) -> None:
        """
        Delete a promotion that was never applied.

        Raises:
            NotFoundError: If the promotion does not exist
            ConflictError: If a booking used the promotion
        """
        async with atomic(self.db):
            promotion = await self.get_promotion_by_id_or_raise(promotion_id)
            uses = await self.db.scalar(
                select(func.count()).select_from(PromotionBooking).where(PromotionBooking.promotion_id == promotion_id)
            )
            if uses:
                raise ConflictError(
                    detail=f"Promotion {promotion.code} has been applied to {uses} booking(s)",
                    code="PROMOTION_IN_USE",
                    conflicting_resource={"promotionId": str(promotion_id), "bookings": uses}
                )
            await self.db.delete(promotion)

        logger.info("Promotion deleted", extra={"promotion_id": str(promotion_id)})
