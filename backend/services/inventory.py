"""
Ingredient stock mutations.

Every change to ingredients.stock_quantity goes through this module as a
single conditional UPDATE, so concurrent requests cannot drive stock below
zero between a read and a write. Each change also appends a StockMovement.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db.database import (
    Ingredient as IngredientModel,
    StockMovement as StockMovementModel,
)
from services.availability import AvailabilityChange, evaluate_product_availability
from services.errors import ConcurrencyConflictError, InsufficientStockError, NotFoundError, Shortage

logger = logging.getLogger(__name__)

SOURCE_ORDER = "ORDER"
SOURCE_RESTOCK = "RESTOCK"
SOURCE_ADJUSTMENT = "ADJUSTMENT"


def to_decimal(x) -> Decimal:
    if isinstance(x, Decimal):
        return x
    # str() first so 0.1 stays 0.1
    return Decimal(str(x))


@dataclass
class RestockResult:
    ingredient_id: UUID
    new_stock: Decimal
    availability: List[AvailabilityChange] = field(default_factory=list)


def _add_movement(
    db: AsyncSession,
    *,
    ingredient_id: UUID,
    change: Decimal,
    stock_after: Decimal,
    source_type: str,
    reason: Optional[str],
    order_id: Optional[UUID],
    created_by_user_id: Optional[UUID],
) -> None:
    db.add(
        StockMovementModel(
            ingredient_id=ingredient_id,
            change=change,
            stock_after=stock_after,
            source_type=source_type,
            reason=reason,
            order_id=order_id,
            created_by_user_id=created_by_user_id,
        )
    )


async def adjust_stock(
    db: AsyncSession,
    ingredient_id: UUID,
    delta,
    *,
    source_type: str,
    reason: Optional[str] = None,
    order_id: Optional[UUID] = None,
    created_by_user_id: Optional[UUID] = None,
) -> Decimal:
    """
    Add `delta` (signed) to an ingredient's stock and return the new stock.

    Decrements carry a floor guard in the WHERE clause; if it does not match,
    nothing is written and InsufficientStockError is raised. Does not
    re-evaluate product availability.
    """
    delta = to_decimal(delta)
    stmt = (
        update(IngredientModel)
        .where(IngredientModel.id == ingredient_id)
        .values(
            stock_quantity=IngredientModel.stock_quantity + delta,
            updated_at=datetime.utcnow(),
        )
        .returning(IngredientModel.stock_quantity)
        .execution_options(synchronize_session=False)
    )
    if delta < 0:
        stmt = stmt.where(IngredientModel.stock_quantity >= -delta)

    row = (await db.execute(stmt)).first()
    if row is None:
        current = (
            await db.execute(
                select(IngredientModel.name, IngredientModel.stock_quantity).where(IngredientModel.id == ingredient_id)
            )
        ).first()
        if current is None:
            raise NotFoundError("ingredient", ingredient_id)
        raise InsufficientStockError(
            [
                Shortage(
                    ingredient_id=ingredient_id,
                    name=current.name,
                    required=-delta,
                    available=to_decimal(current.stock_quantity or 0),
                )
            ]
        )

    new_stock = to_decimal(row.stock_quantity)
    _add_movement(
        db,
        ingredient_id=ingredient_id,
        change=delta,
        stock_after=new_stock,
        source_type=source_type,
        reason=reason,
        order_id=order_id,
        created_by_user_id=created_by_user_id,
    )
    logger.info(
        "Stock %s for ingredient %s: %s -> %s (%s%s)",
        "deducted" if delta < 0 else "added",
        ingredient_id,
        new_stock - delta,
        new_stock,
        source_type,
        f", order {order_id}" if order_id else "",
    )
    return new_stock


async def set_stock_level(
    db: AsyncSession,
    ingredient_id: UUID,
    new_value,
    *,
    reason: Optional[str] = None,
    created_by_user_id: Optional[UUID] = None,
) -> Decimal:
    """
    Admin correction of an ingredient's stock to an absolute value.

    Compare-and-swap on the value just read: if another request changed the
    stock in between, ConcurrencyConflictError is raised and nothing is written.
    """
    new_value = to_decimal(new_value)
    if new_value < 0:
        raise ValueError("stock_quantity must be >= 0")

    current = (
        await db.execute(select(IngredientModel.stock_quantity).where(IngredientModel.id == ingredient_id))
    ).first()
    if current is None:
        raise NotFoundError("ingredient", ingredient_id)
    previous = to_decimal(current.stock_quantity or 0)
    if previous == new_value:
        return previous

    res = await db.execute(
        update(IngredientModel)
        .where(IngredientModel.id == ingredient_id)
        .where(IngredientModel.stock_quantity == previous)
        .values(stock_quantity=new_value, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    if not res.rowcount:
        raise ConcurrencyConflictError(ingredient_id)

    _add_movement(
        db,
        ingredient_id=ingredient_id,
        change=new_value - previous,
        stock_after=new_value,
        source_type=SOURCE_ADJUSTMENT,
        reason=reason or "Manual stock correction",
        order_id=None,
        created_by_user_id=created_by_user_id,
    )
    logger.info("Stock set for ingredient %s: %s -> %s (ADJUSTMENT)", ingredient_id, previous, new_value)
    return new_value


async def restock_ingredient(
    db: AsyncSession,
    ingredient_id: UUID,
    amount,
    *,
    reason: Optional[str] = None,
    created_by_user_id: Optional[UUID] = None,
) -> RestockResult:
    """Add a positive amount to stock, then re-evaluate products using the ingredient."""
    amount = to_decimal(amount)
    if amount <= 0:
        raise ValueError("restock amount must be positive")

    new_stock = await adjust_stock(
        db,
        ingredient_id,
        amount,
        source_type=SOURCE_RESTOCK,
        reason=reason or "Restock",
        created_by_user_id=created_by_user_id,
    )
    availability = await evaluate_product_availability(db, ingredient_ids=[ingredient_id])
    await db.flush()
    return RestockResult(ingredient_id=ingredient_id, new_stock=new_stock, availability=availability)
