from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import current_active_superuser
from core.config import settings
from db.database import (
    get_async_session,
    Ingredient as IngredientModel,
    StockMovement as StockMovementModel,
)
from db.users import User
from schemas.inventory import AvailabilityChangeRead, LowStockIngredient, StockMovementRead
from services.availability import evaluate_product_availability

router = APIRouter()


@router.get("/movements", response_model=List[StockMovementRead])
async def list_movements(
    ingredient_id: Optional[UUID] = None,
    order_id: Optional[UUID] = None,
    source_type: Optional[str] = None,
    limit: int = Query(200, ge=1, le=1000),
    user: User = Depends(current_active_superuser),
    db: AsyncSession = Depends(get_async_session),
):
    """Audit trail of stock changes, newest first"""
    stmt = (
        select(StockMovementModel, IngredientModel.name)
        .join(IngredientModel, IngredientModel.id == StockMovementModel.ingredient_id)
        .order_by(StockMovementModel.created_at.desc())
        .limit(limit)
    )
    if ingredient_id:
        stmt = stmt.where(StockMovementModel.ingredient_id == ingredient_id)
    if order_id:
        stmt = stmt.where(StockMovementModel.order_id == order_id)
    if source_type:
        stmt = stmt.where(StockMovementModel.source_type == source_type.upper())

    res = await db.execute(stmt)
    out = []
    for (m, ingredient_name) in res.all():
        out.append(
            StockMovementRead(
                id=m.id,
                ingredient_id=m.ingredient_id,
                ingredient_name=ingredient_name,
                change=float(m.change),
                stock_after=float(m.stock_after),
                reason=m.reason,
                source_type=m.source_type,
                order_id=m.order_id,
                created_at=m.created_at,
                created_by_user_id=m.created_by_user_id,
            )
        )
    return out


@router.post("/evaluate", response_model=List[AvailabilityChangeRead])
async def evaluate_availability(
    changed_only: bool = False,
    user: User = Depends(current_active_superuser),
    db: AsyncSession = Depends(get_async_session),
):
    """Re-derive is_active for the whole catalog from current ingredient stock"""
    changes = await evaluate_product_availability(db)
    await db.commit()
    return [c.to_dict() for c in changes if c.changed or not changed_only]


@router.get("/low-stock", response_model=List[LowStockIngredient])
async def list_low_stock(
    threshold: Optional[float] = None,
    user: User = Depends(current_active_superuser),
    db: AsyncSession = Depends(get_async_session),
):
    limit = settings.low_stock_threshold if threshold is None else threshold
    res = await db.execute(
        select(IngredientModel)
        .where(IngredientModel.stock_quantity < limit)
        .order_by(IngredientModel.stock_quantity.asc())
    )
    return [
        LowStockIngredient(id=i.id, name=i.name, type=i.type, stock_quantity=float(i.stock_quantity or 0))
        for i in res.scalars().all()
    ]
