import os

# Must be set before anything imports core.config
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import event, select  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from core.auth import current_active_superuser, current_active_user, current_optional_user  # noqa: E402
from db.database import (  # noqa: E402
    Base,
    get_async_session,
    Ingredient,
    Order,
    OrderItem,
    Product,
    ProductIngredient,
)
from db.users import User  # noqa: E402
from main import app  # noqa: E402
from services.availability import evaluate_product_availability  # noqa: E402


@pytest.fixture
async def engine():
    # One shared connection: a commit in any session commits them all. Tests that
    # need sessions isolated from each other use the file-backed engine in
    # test_reconciliation_race.py.
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


async def _make_user(session_maker, **kwargs) -> User:
    async with session_maker() as s:
        user = User(hashed_password="not-a-real-hash", is_active=True, is_verified=True, **kwargs)
        s.add(user)
        await s.commit()
        return user


@pytest.fixture
async def admin(session_maker) -> User:
    return await _make_user(session_maker, email="admin@ribon.vn", is_superuser=True, username="Quản Trị")


@pytest.fixture
async def customer(session_maker) -> User:
    return await _make_user(session_maker, email="khach@example.com", is_superuser=False, username="Khách")


class Factory:
    """Creates committed rows, each in its own short-lived session."""

    def __init__(self, session_maker):
        self.session_maker = session_maker

    async def ingredient(self, name: str, stock, type: str = "Bột") -> Ingredient:
        async with self.session_maker() as s:
            ing = Ingredient(name=name, type=type, stock_quantity=Decimal(str(stock)))
            s.add(ing)
            await s.commit()
            return ing

    async def product(self, name: str, price=45000, recipe=(), evaluate: bool = True, cups: int = 50) -> Product:
        """recipe: iterable of (Ingredient, quantity per cup)"""
        async with self.session_maker() as s:
            p = Product(name=name, price=Decimal(str(price)), stock_quantity=cups, is_active=False)
            s.add(p)
            await s.flush()
            for ing, qty in recipe:
                s.add(ProductIngredient(product_id=p.id, ingredient_id=ing.id, quantity=Decimal(str(qty))))
            await s.flush()
            if evaluate:
                await evaluate_product_availability(s, product_ids=[p.id])
            await s.commit()
            return p

    async def order(self, lines=(), status: str = "Pending") -> Order:
        """lines: iterable of (Product, quantity)"""
        async with self.session_maker() as s:
            o = Order(
                customer_identifier="0912345678",
                phone="0912345678",
                address="12 Lý Tự Trọng, Q1",
                payment_method="Cash",
                status=status,
                total_price=Decimal("0"),
            )
            s.add(o)
            await s.flush()
            total = Decimal("0")
            for p, qty in lines:
                s.add(OrderItem(order_id=o.id, product_id=p.id, product_name=p.name, price=p.price, quantity=qty))
                total += Decimal(p.price) * qty
            o.total_price = total
            await s.commit()
            return o


@pytest.fixture
def factory(session_maker) -> Factory:
    return Factory(session_maker)


async def stock_of(session_maker, ingredient_id) -> float:
    async with session_maker() as s:
        value = (await s.execute(select(Ingredient.stock_quantity).where(Ingredient.id == ingredient_id))).scalar_one()
        return float(value)


async def is_active(session_maker, product_id) -> bool:
    async with session_maker() as s:
        return bool(
            (await s.execute(select(Product.is_active).where(Product.id == product_id))).scalar_one()
        )


@pytest.fixture
def stock(session_maker):
    async def _stock(ingredient_id):
        return await stock_of(session_maker, ingredient_id)
    return _stock


@pytest.fixture
def active(session_maker):
    async def _active(product_id):
        return await is_active(session_maker, product_id)
    return _active


@pytest.fixture
async def client(session_maker, admin):
    async def _session():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_async_session] = _session
    app.dependency_overrides[current_active_superuser] = lambda: admin
    app.dependency_overrides[current_active_user] = lambda: admin
    app.dependency_overrides[current_optional_user] = lambda: None
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
