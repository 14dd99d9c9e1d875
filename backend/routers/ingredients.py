from fastapi import APIRouter, Depends, HTTPException, status, Response
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from typing import List, Optional
from uuid import UUID

from core.auth import current_active_superuser
from db.database import (
    get_async_session,
    Ingredient as IngredientModel,
    ProductIngredient as ProductIngredientModel,
    StockMovement as StockMovementModel,
)
from db.users import User
from schemas.ingredient import IngredientCreate, IngredientRead, IngredientUpdate, RestockRequest
from schemas.inventory import RestockResponse
from services.availability import evaluate_product_availability
from services.inventory import SOURCE_ADJUSTMENT, restock_ingredient, set_stock_level, to_decimal

router = APIRouter()


async def _get_ingredient_or_404(db: AsyncSession, ingredient_id: UUID) -> IngredientModel:
    result = await db.execute(select(IngredientModel).where(IngredientModel.id == ingredient_id))
    ingredient = result.scalar_one_or_none()
    if not ingredient:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Ingredient with id {ingredient_id} not found"
        )
    return ingredient


async def _name_taken(db: AsyncSession, name: str, exclude_id: Optional[UUID] = None) -> bool:
    stmt = select(IngredientModel.id).where(func.lower(IngredientModel.name) == name.lower())
    if exclude_id:
        stmt = stmt.where(IngredientModel.id != exclude_id)
    return (await db.execute(stmt)).first() is not None


@router.get("/", response_model=List[IngredientRead])
async def get_ingredients(
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    """Get all ingredients"""
    result = await db.execute(select(IngredientModel).order_by(func.lower(IngredientModel.name).asc()))
    return [IngredientRead(**i.to_schema) for i in result.scalars().all()]


@router.get("/{ingredient_id}", response_model=IngredientRead)
async def get_ingredient(
    ingredient_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    """Get an ingredient by ID"""
    ingredient = await _get_ingredient_or_404(db, ingredient_id)
    return IngredientRead(**ingredient.to_schema)


@router.post("/", response_model=IngredientRead, status_code=status.HTTP_201_CREATED)
async def create_ingredient(
    ingredient: IngredientCreate,
    user: User = Depends(current_active_superuser),
    db: AsyncSession = Depends(get_async_session),
):
    """Create a new ingredient"""
    if await _name_taken(db, ingredient.name):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Ingredient already exists")

    stock = to_decimal(ingredient.stock_quantity)
    ingredient_model = IngredientModel(
        name=ingredient.name,
        type=ingredient.type,
        stock_quantity=stock,
        price_per_unit=ingredient.price_per_unit,
    )
    db.add(ingredient_model)
    await db.flush()
    if stock:
        db.add(
            StockMovementModel(
                ingredient_id=ingredient_model.id,
                change=stock,
                stock_after=stock,
                source_type=SOURCE_ADJUSTMENT,
                reason="Initial stock",
                created_by_user_id=user.id,
            )
        )
    await evaluate_product_availability(db, ingredient_ids=[ingredient_model.id])
    await db.commit()
    await db.refresh(ingredient_model)
    return IngredientRead(**ingredient_model.to_schema)


@router.patch("/{ingredient_id}", response_model=IngredientRead)
async def update_ingredient(
    ingredient_id: UUID,
    ingredient: IngredientUpdate,
    user: User = Depends(current_active_superuser),
    db: AsyncSession = Depends(get_async_session),
):
    """Update an ingredient; a new stock_quantity is recorded as an adjustment"""
    ingredient_model = await _get_ingredient_or_404(db, ingredient_id)
    data = ingredient.model_dump(exclude_unset=True)

    if data.get("name"):
        if await _name_taken(db, data["name"], exclude_id=ingredient_id):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Ingredient already exists")
        ingredient_model.name = data["name"]
    if "type" in data:
        ingredient_model.type = data["type"]
    if "price_per_unit" in data:
        ingredient_model.price_per_unit = data["price_per_unit"]
    await db.flush()

    if data.get("stock_quantity") is not None:
        await set_stock_level(db, ingredient_id, data["stock_quantity"], created_by_user_id=user.id)
        await evaluate_product_availability(db, ingredient_ids=[ingredient_id])

    await db.commit()
    await db.refresh(ingredient_model)
    return IngredientRead(**ingredient_model.to_schema)


@router.delete("/{ingredient_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_ingredient(
    ingredient_id: UUID,
    user: User = Depends(current_active_superuser),
    db: AsyncSession = Depends(get_async_session),
):
    """Delete an ingredient; recipes using it lose that entry and are re-evaluated"""
    ingredient_model = await _get_ingredient_or_404(db, ingredient_id)
    res = await db.execute(
        select(ProductIngredientModel.product_id).where(ProductIngredientModel.ingredient_id == ingredient_id)
    )
    affected_product_ids = [row[0] for row in res.all()]

    await db.delete(ingredient_model)
    await db.flush()
    # A product whose recipe lost an ingredient may now have none left
    await evaluate_product_availability(db, product_ids=affected_product_ids)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{ingredient_id}/restock", response_model=RestockResponse)
async def restock(
    ingredient_id: UUID,
    payload: RestockRequest,
    user: User = Depends(current_active_superuser),
    db: AsyncSession = Depends(get_async_session),
):
    """Add stock to an ingredient and re-activate products it now makes sellable"""
    result = await restock_ingredient(
        db,
        ingredient_id,
        payload.amount,
        reason=payload.reason,
        created_by_user_id=user.id,
    )
    await db.commit()
    return RestockResponse(
        ingredient_id=result.ingredient_id,
        new_stock=float(result.new_stock),
        availability=[c.to_dict() for c in result.availability],
    )
