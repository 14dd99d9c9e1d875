from collections.abc import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from core.config import settings


class Base(DeclarativeBase):
    pass


engine = create_async_engine(settings.database_url, echo=settings.database_echo)
async_session_maker = async_sessionmaker(engine, expire_on_commit=False)


async def create_db_and_tables():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        yield session


# Models register themselves on Base; imported last so routers can do
# `from db.database import Product as ProductModel`.
from .users import User  # noqa: E402
from .category import Category  # noqa: E402
from .product import Product  # noqa: E402
from .ingredient import Ingredient  # noqa: E402
from .product_ingredient import ProductIngredient  # noqa: E402
from .order import Order, OrderItem  # noqa: E402
from .stock_movement import StockMovement  # noqa: E402
from .contact import Contact  # noqa: E402
from .review import Review  # noqa: E402
from .image import Image  # noqa: E402

__all__ = [
    "Base",
    "engine",
    "async_session_maker",
    "create_db_and_tables",
    "get_async_session",
    "User",
    "Category",
    "Product",
    "Ingredient",
    "ProductIngredient",
    "Order",
    "OrderItem",
    "StockMovement",
    "Contact",
    "Review",
    "Image",
]
