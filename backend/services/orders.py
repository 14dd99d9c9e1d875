"""Order status transitions. Completing an order reconciles its ingredients first."""

import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from db.database import Order as OrderModel
from db.order import ORDER_STATUSES
from services.errors import InvalidStatusTransitionError, NotFoundError
from services.reconciliation import DeductionSummary, reconcile_order

logger = logging.getLogger(__name__)

COMPLETED = "Completed"


@dataclass
class StatusTransition:
    order: OrderModel
    previous_status: str
    deduction: Optional[DeductionSummary] = None


async def transition_order_status(
    db: AsyncSession,
    order_id: UUID,
    new_status: str,
    *,
    user_id: Optional[UUID] = None,
) -> StatusTransition:
    """
    Move an order to `new_status`.

    Entering Completed deducts ingredients in the same transaction; if that
    fails the error propagates, the session is rolled back and the order keeps
    its status. An order whose ingredients were deducted cannot leave
    Completed. Flushes; the caller commits.
    """
    if new_status not in ORDER_STATUSES:
        raise ValueError(f"Unknown order status: {new_status}")

    order = await db.get(OrderModel, order_id)
    if order is None:
        raise NotFoundError("order", order_id)

    previous = order.status
    if previous == new_status:
        return StatusTransition(order=order, previous_status=previous)

    if order.ingredients_deducted_at is not None and new_status != COMPLETED:
        raise InvalidStatusTransitionError(order_id, previous, new_status)

    deduction = None
    if new_status == COMPLETED and order.ingredients_deducted_at is None:
        try:
            deduction = await reconcile_order(db, order_id, created_by_user_id=user_id)
        except Exception:
            await db.rollback()
            raise
        # reconciliation may have rolled back and retried, which expires `order`
        await db.refresh(order)

    order.status = new_status
    await db.flush()
    logger.info("Order %s status %s -> %s", order_id, previous, new_status)
    return StatusTransition(order=order, previous_status=previous, deduction=deduction)
