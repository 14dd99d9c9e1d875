"""
Seed the Ribon Matchalatte menu: categories, ingredients (with stock), drinks
with Vietnamese and English names, and their recipes. Product availability
is derived from stock at the end, so nothing is marked active by hand.

Run (additive: existing rows with the same name are left as they are):
  docker exec -i ribon-api sh -lc "cd /app && PYTHONPATH=/app python scripts/seed_menu.py"
"""

import asyncio
import sys
from dataclasses import dataclass
from pathlib import Path

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from sqlalchemy import func, select  # noqa: E402
from fastapi_users.password import PasswordHelper  # noqa: E402

from db.database import (  # noqa: E402
    async_session_maker,
    create_db_and_tables,
    Category,
    Ingredient,
    Product,
    ProductIngredient,
)
from db.users import User  # noqa: E402
from services.availability import evaluate_product_availability  # noqa: E402

password_helper = PasswordHelper()


@dataclass
class SeedIngredient:
    name: str
    type: str
    stock: float
    price_per_unit: float


@dataclass
class SeedProduct:
    name: str
    name_en: str
    category: str
    price: int  # VND
    description: str
    recipe: list[tuple[str, float, str]]  # (ingredient name, quantity, unit)


CATEGORIES = [
    ("Matcha", "Matcha"),
    ("Cà phê", "Coffee"),
    ("Trà trái cây", "Fruit tea"),
]

INGREDIENTS = [
    SeedIngredient("Matcha Uji", "Bột", 1000, 1200),
    SeedIngredient("Bột cacao", "Bột", 500, 400),
    SeedIngredient("Cà phê hạt", "Bột", 2000, 350),
    SeedIngredient("Sữa tươi", "Sữa", 10000, 40),
    SeedIngredient("Sữa đặc", "Sữa", 3000, 60),
    SeedIngredient("Đường", "Đường", 5000, 25),
    SeedIngredient("Trân châu", "Topping", 2000, 80),
    SeedIngredient("Kem cheese", "Topping", 1500, 150),
    SeedIngredient("Dâu tây", "Trái cây", 800, 200),
    SeedIngredient("Trà xanh lài", "Trà", 1500, 90),
]

PRODUCTS = [
    SeedProduct(
        "Matcha Latte", "Matcha Latte", "Matcha", 45000,
        "Matcha Uji đánh tay cùng sữa tươi",
        [("Matcha Uji", 10, "g"), ("Sữa tươi", 180, "ml"), ("Đường", 5, "g")],
    ),
    SeedProduct(
        "Matcha Kem Cheese", "Matcha Cheese Foam", "Matcha", 55000,
        "Matcha latte phủ lớp kem cheese mặn",
        [("Matcha Uji", 10, "g"), ("Sữa tươi", 150, "ml"), ("Kem cheese", 40, "g")],
    ),
    SeedProduct(
        "Matcha Dâu", "Strawberry Matcha", "Matcha", 59000,
        "Matcha latte với sốt dâu tây tươi",
        [("Matcha Uji", 8, "g"), ("Sữa tươi", 150, "ml"), ("Dâu tây", 40, "g"), ("Đường", 8, "g")],
    ),
    SeedProduct(
        "Cà Phê Sữa Đá", "Vietnamese Iced Milk Coffee", "Cà phê", 35000,
        "Cà phê phin truyền thống với sữa đặc",
        [("Cà phê hạt", 20, "g"), ("Sữa đặc", 30, "ml")],
    ),
    SeedProduct(
        "Cacao Trân Châu", "Cocoa with Pearls", "Cà phê", 45000,
        "Cacao sữa đậm vị kèm trân châu",
        [("Bột cacao", 20, "g"), ("Sữa tươi", 150, "ml"), ("Trân châu", 50, "g")],
    ),
    SeedProduct(
        "Trà Lài Dâu", "Jasmine Strawberry Tea", "Trà trái cây", 42000,
        "Trà xanh lài ủ lạnh với dâu tây",
        [("Trà xanh lài", 8, "g"), ("Dâu tây", 50, "g"), ("Đường", 10, "g")],
    ),
]


async def get_or_create_admin(session) -> User:
    res = await session.execute(select(User).where(User.is_superuser).limit(1))
    user = res.scalar_one_or_none()
    if user:
        return user
    user = User(
        email="admin@ribon.vn",
        hashed_password=password_helper.hash("admin"),
        is_active=True,
        is_superuser=True,
        is_verified=True,
        username="Quản Trị",
    )
    session.add(user)
    await session.flush()
    return user


async def _by_name(session, model, name: str):
    res = await session.execute(select(model).where(func.lower(model.name) == name.lower()))
    return res.scalar_one_or_none()


async def seed():
    await create_db_and_tables()
    async with async_session_maker() as session:
        await get_or_create_admin(session)

        categories = {}
        for name, name_en in CATEGORIES:
            cat = await _by_name(session, Category, name)
            if not cat:
                cat = Category(name=name, name_en=name_en)
                session.add(cat)
                await session.flush()
            categories[name] = cat

        ingredients = {}
        for si in INGREDIENTS:
            ing = await _by_name(session, Ingredient, si.name)
            if not ing:
                ing = Ingredient(name=si.name, type=si.type, stock_quantity=si.stock, price_per_unit=si.price_per_unit)
                session.add(ing)
                await session.flush()
            ingredients[si.name] = ing

        created = 0
        for sp in PRODUCTS:
            if await _by_name(session, Product, sp.name):
                continue
            product = Product(
                name=sp.name,
                name_en=sp.name_en,
                description=sp.description,
                price=sp.price,
                category_id=categories[sp.category].id,
                stock_quantity=50,
                is_active=False,
            )
            session.add(product)
            await session.flush()
            for ing_name, qty, unit in sp.recipe:
                session.add(
                    ProductIngredient(
                        product_id=product.id,
                        ingredient_id=ingredients[ing_name].id,
                        quantity=qty,
                        unit=unit,
                    )
                )
            created += 1
        await session.flush()

        changes = await evaluate_product_availability(session)
        await session.commit()

    active = sum(1 for c in changes if c.new_active)
    print(f"[seed_menu] products created: {created}, active: {active}/{len(changes)}")
    print("[seed_menu] done.")


if __name__ == "__main__":
    asyncio.run(seed())
