from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import current_active_superuser
from core.config import settings
from db.database import (
    get_async_session,
    Ingredient as IngredientModel,
    Order as OrderModel,
    OrderItem as OrderItemModel,
    Product as ProductModel,
)
from db.users import User
from schemas.stats import DashboardStats, TopProduct

router = APIRouter()

# Failed orders are not revenue
REVENUE_STATUSES = ("Pending", "Preparing", "Shipping", "Delivered", "Completed")


async def _count(db: AsyncSession, stmt) -> int:
    return int((await db.execute(stmt)).scalar() or 0)


@router.get("/", response_model=DashboardStats)
async def dashboard_stats(
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    products = await _count(db, select(func.count(ProductModel.id)))
    active_products = await _count(db, select(func.count(ProductModel.id)).where(ProductModel.is_active.is_(True)))
    users = await _count(db, select(func.count(User.id)))
    ingredients = await _count(db, select(func.count(IngredientModel.id)))
    low_stock = await _count(
        db,
        select(func.count(IngredientModel.id)).where(IngredientModel.stock_quantity < settings.low_stock_threshold),
    )

    status_rows = (await db.execute(select(OrderModel.status, func.count(OrderModel.id)).group_by(OrderModel.status))).all()
    orders_by_status = {s: int(n) for (s, n) in status_rows}

    revenue = (
        await db.execute(
            select(func.coalesce(func.sum(OrderModel.total_price), 0)).where(OrderModel.status.in_(REVENUE_STATUSES))
        )
    ).scalar()

    sold_stmt = (
        select(OrderItemModel.quantity)
        .join(OrderModel, OrderModel.id == OrderItemModel.order_id)
        .where(OrderModel.status.in_(REVENUE_STATUSES))
    )
    cups_sold = int((await db.execute(select(func.coalesce(func.sum(sold_stmt.subquery().c.quantity), 0)))).scalar() or 0)

    top_rows = (
        await db.execute(
            select(OrderItemModel.product_id, OrderItemModel.product_name, func.sum(OrderItemModel.quantity).label("cups"))
            .join(OrderModel, OrderModel.id == OrderItemModel.order_id)
            .where(OrderModel.status.in_(REVENUE_STATUSES))
            .where(OrderItemModel.product_id.is_not(None))
            .group_by(OrderItemModel.product_id, OrderItemModel.product_name)
            .order_by(func.sum(OrderItemModel.quantity).desc())
            .limit(5)
        )
    ).all()

    return DashboardStats(
        products=products,
        active_products=active_products,
        users=users,
        orders=sum(orders_by_status.values()),
        orders_by_status=orders_by_status,
        revenue=float(revenue or 0),
        ingredients=ingredients,
        cups_sold=cups_sold,
        low_stock_ingredients=low_stock,
        top_products=[TopProduct(product_id=r.product_id, name=r.product_name or "", cups_sold=int(r.cups)) for r in top_rows],
    )
