"""Promotion router."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import AdminOnly, CurrentUser
from ..core.responses import success_response
from ..schemas.common import Pagination
from ..schemas.registry import CreatePromotionRequest, PromotionOut, UpdatePromotionRequest
from ..services.promotion_service import PromotionService

router = APIRouter(prefix="/api/promotions", tags=["promotions"])

DB_DEPENDENCY = Depends(get_db)


@router.get("")
async def list_promotions(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    promotions, total = await PromotionService(db).list_promotions(page, limit)
    return success_response({
        "promotions": [PromotionOut.model_validate(promotion) for promotion in promotions],
        "pagination": Pagination.build(page, limit, total),
    })


@router.get("/active")
async def list_active_promotions(db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
    """Promotions valid right now."""
    promotions = await PromotionService(db).list_active()
    return success_response({"promotions": [PromotionOut.model_validate(promotion) for promotion in promotions]})


@router.get("/code/{code}")
async def get_promotion_by_code(code: str, db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
    promotion = await PromotionService(db).get_promotion_by_code(code)
    return success_response({"promotion": PromotionOut.model_validate(promotion)})


@router.get("/{promotion_id}")
async def get_promotion(promotion_id: UUID, db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
    promotion = await PromotionService(db).get_promotion_by_id_or_raise(promotion_id)
    return success_response({"promotion": PromotionOut.model_validate(promotion)})


@router.post("", status_code=201)
async def create_promotion(
    request: CreatePromotionRequest,
    _: CurrentUser = AdminOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    promotion = await PromotionService(db).create_promotion(request)
    return success_response({"promotion": PromotionOut.model_validate(promotion)}, "Promotion created", status_code=201)


@router.put("/{promotion_id}")
async def update_promotion(
    promotion_id: UUID,
    request: UpdatePromotionRequest,
    _: CurrentUser = AdminOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    promotion = await PromotionService(db).update_promotion(promotion_id, request)
    return success_response({"promotion": PromotionOut.model_validate(promotion)}, "Promotion updated")


@router.delete("/{promotion_id}")
async def delete_promotion(
    promotion_id: UUID,
    _: CurrentUser = AdminOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Delete a promotion that no booking has used."""
    await PromotionService(db).delete_promotion(promotion_id)
    return success_response(message="Promotion deleted")
