"""Database migration utilities for databases created before the current schema"""
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine


STOCK_CHECK_CONSTRAINTS = {
    # constraint name -> (table, condition)
    "ck_ingredients_stock_non_negative": ("ingredients", "stock_quantity >= 0"),
    "ck_product_ingredients_quantity_positive": ("product_ingredients", "quantity > 0"),
    "ck_order_items_quantity_positive": ("order_items", "quantity > 0"),
}


async def add_missing_order_columns(engine: AsyncEngine):
    """Add ingredients_deducted_at to orders if it doesn't exist"""
    async with engine.begin() as conn:
        result = await conn.execute(
            text("""
                SELECT column_name
                FROM information_schema.columns
                WHERE table_name = 'orders'
                AND column_name = 'ingredients_deducted_at'
            """)
        )
        column_exists = result.scalar() is not None

        if not column_exists:
            print("Adding ingredients_deducted_at column to orders table...")
            await conn.execute(
                text("""
                    ALTER TABLE orders
                    ADD COLUMN ingredients_deducted_at TIMESTAMP NULL
                """)
            )
            # Orders completed before this column existed already had their
            # ingredients deducted; mark them so they are never deducted twice.
            await conn.execute(
                text("""
                    UPDATE orders
                    SET ingredients_deducted_at = updated_at
                    WHERE status = 'Completed'
                """)
            )
            print("Successfully added ingredients_deducted_at column to orders table")
        else:
            print("ingredients_deducted_at column already exists in orders table")


async def add_stock_check_constraints(engine: AsyncEngine):
    """Add the non-negativity / positivity CHECK constraints on older tables"""
    async with engine.begin() as conn:
        result = await conn.execute(
            text("""
                SELECT constraint_name
                FROM information_schema.table_constraints
                WHERE constraint_type = 'CHECK'
            """)
        )
        existing = {row[0] for row in result.fetchall()}

        for name, (table, condition) in STOCK_CHECK_CONSTRAINTS.items():
            if name in existing:
                continue
            print(f"Adding {name} to {table}...")
            # NOT VALID: existing bad rows must be fixed by an admin, new writes are checked
            await conn.execute(
                text(f"""
                    ALTER TABLE {table}
                    ADD CONSTRAINT {name} CHECK ({condition}) NOT VALID
                """)
            )


async def run_migrations(engine: AsyncEngine):
    # information_schema / ALTER ... NOT VALID are PostgreSQL only
    if engine.dialect.name != "postgresql":
        return
    await add_missing_order_columns(engine)
    await add_stock_check_constraints(engine)
