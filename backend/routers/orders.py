from decimal import Decimal
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.orm import selectinload
from typing import List, Optional
from uuid import UUID

from core.auth import current_active_superuser, current_active_user, current_optional_user
from db.users import User
from db.database import (
    get_async_session,
    Order as OrderModel,
    OrderItem as OrderItemModel,
    Product as ProductModel,
)
from schemas.orders import (
    CheckoutRequest,
    OrderItemRead,
    OrderRead,
    OrderStatusResponse,
    OrderStatusUpdate,
    normalize_vn_phone,
)
from services.orders import transition_order_status

router = APIRouter()


def _serialize_order(o: OrderModel) -> OrderRead:
    items_out: List[OrderItemRead] = []
    for it in (o.items or []):
        p = getattr(it, "product", None)
        items_out.append(
            OrderItemRead(
                id=it.id,
                product_id=it.product_id,
                product_name=it.product_name or (getattr(p, "name", None) if p else None),
                image_url=getattr(p, "image_url", None) if p else None,
                quantity=it.quantity,
                price=float(it.price),
                toppings=list(it.toppings or []),
            )
        )
    return OrderRead(
        id=o.id,
        user_id=o.user_id,
        customer_identifier=o.customer_identifier,
        customer_name=o.customer_name,
        phone=o.phone,
        address=o.address,
        payment_method=o.payment_method,
        notes=o.notes,
        status=o.status,
        total_price=float(o.total_price or 0),
        ingredients_deducted_at=o.ingredients_deducted_at,
        created_at=o.created_at,
        items=items_out,
    )


def _order_query():
    return select(OrderModel).options(
        selectinload(OrderModel.items).selectinload(OrderItemModel.product),
    )


async def _load_order(db: AsyncSession, order_id: UUID) -> OrderModel:
    res = await db.execute(
        _order_query().where(OrderModel.id == order_id).execution_options(populate_existing=True)
    )
    o = res.scalar_one_or_none()
    if not o:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return o


@router.post("/checkout", response_model=OrderRead, status_code=status.HTTP_201_CREATED)
async def checkout(
    payload: CheckoutRequest,
    db: AsyncSession = Depends(get_async_session),
    user: Optional[User] = Depends(current_optional_user),
):
    """
    Guest or authenticated checkout.

    Prices are taken from the catalog at order time, not from the client.
    Inactive products (not enough ingredients) cannot be ordered.
    """
    product_ids = {it.product_id for it in payload.items}
    res = await db.execute(select(ProductModel).where(ProductModel.id.in_(product_ids)))
    products = {p.id: p for p in res.scalars().all()}

    missing = [str(pid) for pid in product_ids if pid not in products]
    if missing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown product(s): {', '.join(missing)}",
        )
    # inactive: ingredients short; stock_quantity 0: sold out for today
    unavailable = sorted(p.name for p in products.values() if not p.is_active or not p.stock_quantity)
    if unavailable:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "code": "product_unavailable",
                "message": f"Currently unavailable: {', '.join(unavailable)}",
                "message_vi": f"Sản phẩm tạm hết: {', '.join(unavailable)}",
                "products": unavailable,
            },
        )

    total = Decimal("0")
    order = OrderModel(
        user_id=user.id if user else None,
        customer_identifier=payload.phone,
        customer_name=payload.customer_name or (user.username if user else None),
        phone=payload.phone,
        address=payload.address,
        payment_method=payload.payment_method,
        notes=payload.notes,
        status="Pending",
    )
    for it in payload.items:
        p = products[it.product_id]
        price = Decimal(p.price)
        total += price * it.quantity
        order.items.append(
            OrderItemModel(
                product_id=p.id,
                product_name=p.name,
                price=price,
                quantity=it.quantity,
                toppings=list(it.toppings or []),
            )
        )
    order.total_price = total

    db.add(order)
    await db.commit()
    return _serialize_order(await _load_order(db, order.id))


@router.get("/track", response_model=List[OrderRead])
async def track_orders(
    phone: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_async_session),
):
    """Guest order tracking by phone number, newest first"""
    try:
        normalized = normalize_vn_phone(phone)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    res = await db.execute(
        _order_query().where(OrderModel.phone == normalized).order_by(OrderModel.created_at.desc())
    )
    return [_serialize_order(o) for o in res.scalars().all()]


@router.get("/mine", response_model=List[OrderRead])
async def my_orders(
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    res = await db.execute(
        _order_query().where(OrderModel.user_id == user.id).order_by(OrderModel.created_at.desc())
    )
    return [_serialize_order(o) for o in res.scalars().all()]


@router.get("/", response_model=List[OrderRead])
async def list_orders(
    status_filter: Optional[str] = Query(None, alias="status"),
    phone: Optional[str] = None,
    limit: int = Query(200, ge=1, le=1000),
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    stmt = _order_query().order_by(OrderModel.created_at.desc()).limit(limit)
    if status_filter:
        stmt = stmt.where(OrderModel.status == status_filter)
    if phone:
        stmt = stmt.where(OrderModel.phone.contains(phone.strip()))
    res = await db.execute(stmt)
    return [_serialize_order(o) for o in res.scalars().all()]


@router.get("/{order_id}", response_model=OrderRead)
async def get_order(
    order_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    return _serialize_order(await _load_order(db, order_id))


@router.patch("/{order_id}/status", response_model=OrderStatusResponse)
async def update_order_status(
    order_id: UUID,
    payload: OrderStatusUpdate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    """
    Change an order's status.

    Completing an order deducts its ingredients first; if stock is short the
    order keeps its current status and a 409 lists the missing ingredients.
    """
    transition = await transition_order_status(db, order_id, payload.status, user_id=user.id)
    await db.commit()

    deduction = transition.deduction.to_dict() if transition.deduction else None
    return OrderStatusResponse(
        order=_serialize_order(await _load_order(db, order_id)),
        previous_status=transition.previous_status,
        deduction=deduction,
    )
