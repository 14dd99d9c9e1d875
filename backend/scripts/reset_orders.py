"""
Delete ALL orders + order items from the database.

Ingredient stock is not restored; stock movements keep their history with
order_id cleared.

Run inside docker (recommended):
  docker exec -i ribon-api sh -lc "cd /app && PYTHONPATH=/app python scripts/reset_orders.py"
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from sqlalchemy import delete, update  # noqa: E402

from db.database import async_session_maker, Order, OrderItem, StockMovement  # noqa: E402


async def main() -> None:
    async with async_session_maker() as db:
        await db.execute(update(StockMovement).where(StockMovement.order_id.is_not(None)).values(order_id=None))
        # Delete children first (FK)
        res_items = await db.execute(delete(OrderItem))
        res_orders = await db.execute(delete(Order))
        await db.commit()

        items_n = int(getattr(res_items, "rowcount", 0) or 0)
        orders_n = int(getattr(res_orders, "rowcount", 0) or 0)
        print(f"Deleted order_items: {items_n}, orders: {orders_n}")


if __name__ == "__main__":
    asyncio.run(main())
