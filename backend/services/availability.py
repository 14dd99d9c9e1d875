"""
Product availability derived from ingredient stock.

A product is sellable only when it has a recipe and every recipe entry can
be covered for one unit from current stock. This module is the only writer
of products.is_active.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db.database import (
    Ingredient as IngredientModel,
    Product as ProductModel,
    ProductIngredient as ProductIngredientModel,
)
from services.errors import NotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AvailabilityChange:
    product_id: UUID
    previous_active: bool
    new_active: bool

    @property
    def changed(self) -> bool:
        return self.previous_active != self.new_active

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "previous_active": self.previous_active,
            "new_active": self.new_active,
            "changed": self.changed,
        }


def is_sellable(entries: Sequence) -> bool:
    """entries: rows with .quantity (per unit) and .stock_quantity (ingredient stock)"""
    if not entries:
        return False
    return all(Decimal(e.stock_quantity or 0) >= Decimal(e.quantity) for e in entries)


async def evaluate_product_availability(
    db: AsyncSession,
    *,
    product_ids: Optional[Iterable[UUID]] = None,
    ingredient_ids: Optional[Iterable[UUID]] = None,
) -> List[AvailabilityChange]:
    """
    Re-derive is_active and write the products whose flag changed.

    - no filters: the whole catalog
    - ingredient_ids: only products whose recipe uses one of those ingredients
    - product_ids: only those products

    Flushes but does not commit.
    """
    stmt = select(ProductModel.id, ProductModel.is_active).order_by(ProductModel.name.asc())
    if ingredient_ids is not None:
        ing_ids = set(ingredient_ids)
        if not ing_ids:
            return []
        stmt = stmt.where(
            ProductModel.id.in_(
                select(ProductIngredientModel.product_id).where(ProductIngredientModel.ingredient_id.in_(ing_ids))
            )
        )
    if product_ids is not None:
        prod_ids = set(product_ids)
        if not prod_ids:
            return []
        stmt = stmt.where(ProductModel.id.in_(prod_ids))

    products = (await db.execute(stmt)).all()
    if not products:
        return []

    entry_rows = (
        await db.execute(
            select(
                ProductIngredientModel.product_id,
                ProductIngredientModel.quantity,
                IngredientModel.stock_quantity,
            )
            .join(IngredientModel, IngredientModel.id == ProductIngredientModel.ingredient_id)
            .where(ProductIngredientModel.product_id.in_([p.id for p in products]))
        )
    ).all()
    entries_by_product: dict[UUID, list] = defaultdict(list)
    for row in entry_rows:
        entries_by_product[row.product_id].append(row)

    changes: List[AvailabilityChange] = []
    to_activate: List[UUID] = []
    to_deactivate: List[UUID] = []
    for p in products:
        new_active = is_sellable(entries_by_product.get(p.id, []))
        change = AvailabilityChange(product_id=p.id, previous_active=bool(p.is_active), new_active=new_active)
        changes.append(change)
        if change.changed:
            (to_activate if new_active else to_deactivate).append(p.id)

    if to_activate:
        await db.execute(
            update(ProductModel)
            .where(ProductModel.id.in_(to_activate))
            .values(is_active=True)
            .execution_options(synchronize_session=False)
        )
    if to_deactivate:
        await db.execute(
            update(ProductModel)
            .where(ProductModel.id.in_(to_deactivate))
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
    if to_activate or to_deactivate:
        await db.flush()
        logger.info(
            "Availability updated: %d activated, %d deactivated (%d evaluated)",
            len(to_activate),
            len(to_deactivate),
            len(changes),
        )
    return changes


async def evaluate_product(db: AsyncSession, product_id: UUID) -> AvailabilityChange:
    exists = (await db.execute(select(ProductModel.id).where(ProductModel.id == product_id))).scalar_one_or_none()
    if exists is None:
        raise NotFoundError("product", product_id)
    changes = await evaluate_product_availability(db, product_ids=[product_id])
    return changes[0]
