"""
Order fulfillment reconciliation.

When an order is completed, the ingredients its items consume are deducted
from stock, all or nothing, and availability is re-derived for the products
that use those ingredients. Callers own the transaction: nothing here
commits, and the order status must be written in the same transaction.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from db.database import (
    Ingredient as IngredientModel,
    Order as OrderModel,
    OrderItem as OrderItemModel,
    ProductIngredient as ProductIngredientModel,
)
from services.availability import AvailabilityChange, evaluate_product_availability
from services.errors import (
    AlreadyReconciledError,
    ConcurrencyConflictError,
    EmptyOrderError,
    InsufficientStockError,
    NotFoundError,
    Shortage,
)
from services.inventory import SOURCE_ORDER, adjust_stock, to_decimal

logger = logging.getLogger(__name__)


@dataclass
class DeductionSummary:
    order_id: UUID
    deducted: Dict[UUID, Decimal]
    availability: List[AvailabilityChange] = field(default_factory=list)

    @property
    def ingredient_ids(self) -> List[UUID]:
        return list(self.deducted)

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "deducted": {str(k): float(v) for k, v in self.deducted.items()},
            "availability": [c.to_dict() for c in self.availability if c.changed],
        }


def aggregate_ingredient_usage(order_items: Iterable, recipe_entries: Iterable) -> Dict[UUID, Decimal]:
    """
    Total ingredient consumption for a set of order lines.

    order_items: rows with .product_id, .quantity
    recipe_entries: rows with .product_id, .ingredient_id, .quantity (per unit)

    Recipes are matched by product, so two lines for the same product both
    contribute.
    """
    recipes_by_product = defaultdict(list)
    for entry in recipe_entries:
        recipes_by_product[entry.product_id].append(entry)

    usage: Dict[UUID, Decimal] = defaultdict(Decimal)
    for item in order_items:
        for entry in recipes_by_product.get(item.product_id, []):
            usage[entry.ingredient_id] += to_decimal(entry.quantity) * int(item.quantity)
    return dict(usage)


async def _reconcile_once(
    db: AsyncSession,
    order_id: UUID,
    created_by_user_id: Optional[UUID],
) -> DeductionSummary:
    order = (
        await db.execute(
            select(OrderModel.id, OrderModel.ingredients_deducted_at).where(OrderModel.id == order_id)
        )
    ).first()
    if order is None:
        raise NotFoundError("order", order_id)
    if order.ingredients_deducted_at is not None:
        raise AlreadyReconciledError(order_id)

    items = (
        await db.execute(
            select(OrderItemModel.product_id, OrderItemModel.quantity).where(OrderItemModel.order_id == order_id)
        )
    ).all()
    if not items:
        raise EmptyOrderError(order_id)

    product_ids = {it.product_id for it in items if it.product_id is not None}
    recipe_entries = []
    if product_ids:
        recipe_entries = (
            await db.execute(
                select(
                    ProductIngredientModel.product_id,
                    ProductIngredientModel.ingredient_id,
                    ProductIngredientModel.quantity,
                ).where(ProductIngredientModel.product_id.in_(product_ids))
            )
        ).all()

    usage = aggregate_ingredient_usage(items, recipe_entries)
    logger.info("Order %s ingredient usage: %s", order_id, {str(k): str(v) for k, v in usage.items()})

    if usage:
        stock_rows = (
            await db.execute(
                select(IngredientModel.id, IngredientModel.name, IngredientModel.stock_quantity)
                .where(IngredientModel.id.in_(list(usage)))
            )
        ).all()
        stock_by_id = {r.id: r for r in stock_rows}

        for ingredient_id in usage:
            if ingredient_id not in stock_by_id:
                raise NotFoundError("ingredient", ingredient_id)

        shortages = [
            Shortage(
                ingredient_id=ingredient_id,
                name=stock_by_id[ingredient_id].name,
                required=needed,
                available=to_decimal(stock_by_id[ingredient_id].stock_quantity or 0),
            )
            for ingredient_id, needed in usage.items()
            if to_decimal(stock_by_id[ingredient_id].stock_quantity or 0) < needed
        ]
        if shortages:
            shortages.sort(key=lambda s: s.name.lower())
            logger.warning("Order %s cannot be fulfilled: %s", order_id, "; ".join(s.name for s in shortages))
            raise InsufficientStockError(shortages)

    # Claim the order first: a second completion of the same order blocks on
    # this row and then matches nothing.
    claimed = await db.execute(
        update(OrderModel)
        .where(OrderModel.id == order_id)
        .where(OrderModel.ingredients_deducted_at.is_(None))
        .values(ingredients_deducted_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    if not claimed.rowcount:
        raise ConcurrencyConflictError()

    # Stable order keeps row locks consistent across concurrent reconciliations
    for ingredient_id in sorted(usage, key=str):
        try:
            await adjust_stock(
                db,
                ingredient_id,
                -usage[ingredient_id],
                source_type=SOURCE_ORDER,
                reason=f"Order completed: {order_id}",
                order_id=order_id,
                created_by_user_id=created_by_user_id,
            )
        except InsufficientStockError as e:
            # Passed the sufficiency check above, so someone else consumed it meanwhile
            raise ConcurrencyConflictError(ingredient_id) from e

    availability = await evaluate_product_availability(db, ingredient_ids=list(usage))
    await db.flush()
    return DeductionSummary(order_id=order_id, deducted=usage, availability=availability)


async def reconcile_order(
    db: AsyncSession,
    order_id: UUID,
    *,
    created_by_user_id: Optional[UUID] = None,
    max_attempts: Optional[int] = None,
) -> DeductionSummary:
    """
    Deduct the ingredients consumed by an order.

    Raises InsufficientStockError (nothing written), EmptyOrderError,
    NotFoundError, AlreadyReconciledError, or ConcurrencyConflictError once
    the retries are exhausted. On a conflict the session is rolled back and
    the whole reconciliation starts again from a fresh read.
    """
    attempts = max_attempts or settings.reconcile_max_attempts
    for attempt in range(1, attempts + 1):
        try:
            summary = await _reconcile_once(db, order_id, created_by_user_id)
        except ConcurrencyConflictError as e:
            await db.rollback()
            logger.warning(
                "Concurrent stock change while reconciling order %s (ingredient %s), attempt %d/%d",
                order_id,
                e.ingredient_id,
                attempt,
                attempts,
            )
            if attempt >= attempts:
                raise ConcurrencyConflictError(e.ingredient_id, attempts=attempt) from e
            continue
        logger.info(
            "Order %s reconciled: %d ingredient(s) deducted",
            order_id,
            len(summary.deducted),
        )
        return summary
    raise ConcurrencyConflictError(attempts=attempts)
