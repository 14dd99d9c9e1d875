import uuid

import pytest
from sqlalchemy import event

from services.availability import evaluate_product, evaluate_product_availability, is_sellable
from services.errors import NotFoundError


class _Entry:
    def __init__(self, quantity, stock_quantity):
        self.quantity = quantity
        self.stock_quantity = stock_quantity


def test_is_sellable_needs_a_recipe():
    assert is_sellable([]) is False


def test_is_sellable_one_short_ingredient_blocks():
    assert is_sellable([_Entry(10, 100), _Entry(5, 5)]) is True
    assert is_sellable([_Entry(10, 100), _Entry(5, 4)]) is False


async def test_products_follow_ingredient_stock(db, factory, active):
    matcha = await factory.ingredient("Matcha", 15)
    sugar = await factory.ingredient("Đường", 3)
    latte = await factory.product("Matcha Latte", recipe=[(matcha, 10), (sugar, 5)], evaluate=False)
    pure = await factory.product("Matcha Nguyên Chất", recipe=[(matcha, 12)], evaluate=False)

    changes = await evaluate_product_availability(db)
    await db.commit()

    by_id = {c.product_id: c for c in changes}
    assert by_id[latte.id].new_active is False
    assert by_id[pure.id].new_active is True
    assert await active(latte.id) is False
    assert await active(pure.id) is True


async def test_product_without_recipe_is_never_active(db, factory, active):
    bare = await factory.product("Chưa có công thức", evaluate=False)
    changes = await evaluate_product_availability(db, product_ids=[bare.id])
    await db.commit()
    assert changes[0].new_active is False
    assert await active(bare.id) is False


async def test_ingredient_scope_only_touches_dependent_products(db, factory):
    matcha = await factory.ingredient("Matcha", 100)
    coffee = await factory.ingredient("Cà phê", 100)
    latte = await factory.product("Matcha Latte", recipe=[(matcha, 10)], evaluate=False)
    await factory.product("Cà Phê Sữa", recipe=[(coffee, 20)], evaluate=False)

    changes = await evaluate_product_availability(db, ingredient_ids=[matcha.id])
    assert [c.product_id for c in changes] == [latte.id]


async def test_empty_scopes_evaluate_nothing(db, factory):
    matcha = await factory.ingredient("Matcha", 100)
    await factory.product("Matcha Latte", recipe=[(matcha, 10)], evaluate=False)
    assert await evaluate_product_availability(db, ingredient_ids=[]) == []
    assert await evaluate_product_availability(db, product_ids=[]) == []


async def test_second_run_writes_nothing(db, engine, factory):
    matcha = await factory.ingredient("Matcha", 100)
    await factory.product("Matcha Latte", recipe=[(matcha, 10)], evaluate=False)
    await factory.product("Matcha Đá Xay", recipe=[(matcha, 200)], evaluate=False)

    first = await evaluate_product_availability(db)
    await db.commit()
    assert sum(c.changed for c in first) == 1

    product_updates = []

    @event.listens_for(engine.sync_engine, "before_cursor_execute")
    def _count(conn, cursor, statement, parameters, context, executemany):
        if statement.lstrip().upper().startswith("UPDATE PRODUCTS"):
            product_updates.append(statement)

    second = await evaluate_product_availability(db)
    await db.commit()
    event.remove(engine.sync_engine, "before_cursor_execute", _count)

    assert not any(c.changed for c in second)
    assert product_updates == []


async def test_evaluate_single_product(db, factory):
    matcha = await factory.ingredient("Matcha", 100)
    latte = await factory.product("Matcha Latte", recipe=[(matcha, 10)], evaluate=False)

    change = await evaluate_product(db, latte.id)
    assert change.previous_active is False
    assert change.new_active is True
    assert change.changed is True


async def test_evaluate_unknown_product(db):
    with pytest.raises(NotFoundError):
        await evaluate_product(db, uuid.uuid4())
