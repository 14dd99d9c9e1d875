"""
Re-derive every product's is_active flag from current ingredient stock.

Products without a recipe, or with an ingredient below one serving, end up
inactive; the rest are activated.

Run:
  docker exec -i ribon-api sh -lc "cd /app && PYTHONPATH=/app python scripts/reevaluate_products.py"
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from db.database import async_session_maker  # noqa: E402
from services.availability import evaluate_product_availability  # noqa: E402


async def main() -> None:
    async with async_session_maker() as db:
        changes = await evaluate_product_availability(db)
        await db.commit()

    changed = [c for c in changes if c.changed]
    for c in changed:
        print(f"  {c.product_id}: {'active' if c.new_active else 'inactive'}")
    print(f"Evaluated products: {len(changes)}, changed: {len(changed)}")


if __name__ == "__main__":
    asyncio.run(main())
