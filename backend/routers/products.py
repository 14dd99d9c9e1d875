from fastapi import APIRouter, Depends, HTTPException, Query, status, Response
from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from typing import List, Optional
from uuid import UUID

from core.auth import current_active_superuser, current_active_user, current_optional_user
from db.database import (
    get_async_session,
    Category as CategoryModel,
    Ingredient as IngredientModel,
    Product as ProductModel,
    ProductIngredient as ProductIngredientModel,
    Review as ReviewModel,
)
from db.users import User
from schemas.products import (
    ProductCreate,
    ProductRead,
    ProductUpdate,
    RecipeEntryCreate,
    RecipeEntryRead,
    RecipeEntryUpdate,
)
from schemas.reviews import ReviewCreate, ReviewRead
from services.availability import evaluate_product_availability

router = APIRouter()


def _serialize_recipe_entry(pi: ProductIngredientModel) -> RecipeEntryRead:
    ing = getattr(pi, "ingredient", None)
    return RecipeEntryRead(
        id=pi.id,
        product_id=pi.product_id,
        ingredient_id=pi.ingredient_id,
        ingredient_name=getattr(ing, "name", None) if ing else None,
        ingredient_stock=float(ing.stock_quantity or 0) if ing else None,
        quantity=float(pi.quantity),
        unit=pi.unit,
    )


def _serialize_product(p: ProductModel, include_recipe: bool = False) -> ProductRead:
    data = p.to_schema
    cat = getattr(p, "category", None)
    data["category_name"] = getattr(cat, "name", None) if cat else None
    if include_recipe:
        data["recipe"] = [_serialize_recipe_entry(pi) for pi in (p.recipe_entries or [])]
    return ProductRead(**data)


async def _load_product(db: AsyncSession, product_id: UUID) -> ProductModel:
    res = await db.execute(
        select(ProductModel)
        .options(
            selectinload(ProductModel.category),
            selectinload(ProductModel.recipe_entries).selectinload(ProductIngredientModel.ingredient),
        )
        .where(ProductModel.id == product_id)
        .execution_options(populate_existing=True)
    )
    p = res.scalar_one_or_none()
    if not p:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Product with id {product_id} not found")
    return p


@router.get("/", response_model=List[ProductRead])
async def list_products(
    category_id: Optional[UUID] = None,
    q: Optional[str] = None,
    include_inactive: bool = False,
    db: AsyncSession = Depends(get_async_session),
    user: Optional[User] = Depends(current_optional_user),
):
    """
    Menu listing. Customers only see active (sellable) products; admins may
    pass include_inactive=true for the back office.
    """
    stmt = select(ProductModel).options(selectinload(ProductModel.category))
    if not (include_inactive and user is not None and user.is_superuser):
        stmt = stmt.where(ProductModel.is_active.is_(True))
    if category_id:
        stmt = stmt.where(ProductModel.category_id == category_id)
    if q:
        qq = f"%{q.strip().lower()}%"
        stmt = stmt.where(
            or_(
                func.lower(ProductModel.name).like(qq),
                func.lower(ProductModel.name_en).like(qq),
                func.lower(ProductModel.description).like(qq),
            )
        )
    res = await db.execute(stmt.order_by(func.lower(ProductModel.name).asc()))
    return [_serialize_product(p) for p in res.scalars().all()]


@router.get("/{product_id}", response_model=ProductRead)
async def get_product(product_id: UUID, db: AsyncSession = Depends(get_async_session)):
    p = await _load_product(db, product_id)
    return _serialize_product(p, include_recipe=True)


@router.post("/", response_model=ProductRead, status_code=status.HTTP_201_CREATED)
async def create_product(
    payload: ProductCreate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    if payload.category_id:
        cat = await db.get(CategoryModel, payload.category_id)
        if not cat:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Category not found")

    # New products start inactive until a recipe makes them sellable
    p = ProductModel(**payload.model_dump(), is_active=False)
    db.add(p)
    await db.flush()
    await evaluate_product_availability(db, product_ids=[p.id])
    await db.commit()
    return _serialize_product(await _load_product(db, p.id), include_recipe=True)


@router.patch("/{product_id}", response_model=ProductRead)
async def update_product(
    product_id: UUID,
    payload: ProductUpdate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    p = await _load_product(db, product_id)
    data = payload.model_dump(exclude_unset=True)
    if "name" in data:
        name = (data["name"] or "").strip()
        if not name:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="name cannot be empty")
        data["name"] = name
    if data.get("category_id"):
        cat = await db.get(CategoryModel, data["category_id"])
        if not cat:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Category not found")
    for key, value in data.items():
        setattr(p, key, value)

    # Recipe and ingredient stock are not editable here, so is_active cannot change
    await db.commit()
    return _serialize_product(await _load_product(db, product_id), include_recipe=True)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    p = await db.get(ProductModel, product_id)
    if not p:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Product with id {product_id} not found")
    await db.delete(p)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ----------------------------
# Recipe (bill of materials)
# ----------------------------

@router.get("/{product_id}/ingredients", response_model=List[RecipeEntryRead])
async def list_recipe_entries(
    product_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    p = await _load_product(db, product_id)
    return [_serialize_recipe_entry(pi) for pi in (p.recipe_entries or [])]


@router.post("/{product_id}/ingredients", response_model=RecipeEntryRead, status_code=status.HTTP_201_CREATED)
async def add_recipe_entry(
    product_id: UUID,
    payload: RecipeEntryCreate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    p = await db.get(ProductModel, product_id)
    if not p:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Product with id {product_id} not found")
    ing = await db.get(IngredientModel, payload.ingredient_id)
    if not ing:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Ingredient not found")

    existing = await db.execute(
        select(ProductIngredientModel)
        .where(ProductIngredientModel.product_id == product_id)
        .where(ProductIngredientModel.ingredient_id == payload.ingredient_id)
    )
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Ingredient is already in this recipe")

    pi = ProductIngredientModel(
        product_id=product_id,
        ingredient_id=payload.ingredient_id,
        quantity=payload.quantity,
        unit=(payload.unit or "g").strip() or "g",
    )
    db.add(pi)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Ingredient is already in this recipe")

    await evaluate_product_availability(db, product_ids=[product_id])
    await db.commit()
    res = await db.execute(
        select(ProductIngredientModel)
        .options(selectinload(ProductIngredientModel.ingredient))
        .where(ProductIngredientModel.id == pi.id)
    )
    return _serialize_recipe_entry(res.scalar_one())


@router.patch("/{product_id}/ingredients/{entry_id}", response_model=RecipeEntryRead)
async def update_recipe_entry(
    product_id: UUID,
    entry_id: UUID,
    payload: RecipeEntryUpdate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    res = await db.execute(
        select(ProductIngredientModel)
        .options(selectinload(ProductIngredientModel.ingredient))
        .where(ProductIngredientModel.id == entry_id)
        .where(ProductIngredientModel.product_id == product_id)
    )
    pi = res.scalar_one_or_none()
    if not pi:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recipe entry not found")

    data = payload.model_dump(exclude_unset=True)
    if data.get("quantity") is not None:
        pi.quantity = data["quantity"]
    if data.get("unit"):
        pi.unit = data["unit"].strip()
    await db.flush()

    await evaluate_product_availability(db, product_ids=[product_id])
    await db.commit()
    res = await db.execute(
        select(ProductIngredientModel)
        .options(selectinload(ProductIngredientModel.ingredient))
        .where(ProductIngredientModel.id == entry_id)
        .execution_options(populate_existing=True)
    )
    return _serialize_recipe_entry(res.scalar_one())


@router.delete("/{product_id}/ingredients/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_recipe_entry(
    product_id: UUID,
    entry_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    res = await db.execute(
        select(ProductIngredientModel)
        .where(ProductIngredientModel.id == entry_id)
        .where(ProductIngredientModel.product_id == product_id)
    )
    pi = res.scalar_one_or_none()
    if not pi:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recipe entry not found")
    await db.delete(pi)
    await db.flush()

    await evaluate_product_availability(db, product_ids=[product_id])
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ----------------------------
# Reviews
# ----------------------------

@router.get("/{product_id}/reviews", response_model=List[ReviewRead])
async def list_reviews(product_id: UUID, db: AsyncSession = Depends(get_async_session)):
    res = await db.execute(
        select(ReviewModel)
        .options(selectinload(ReviewModel.user))
        .where(ReviewModel.product_id == product_id)
        .order_by(ReviewModel.created_at.desc())
    )
    return [ReviewRead(**r.to_schema) for r in res.scalars().all()]


@router.post("/{product_id}/reviews", response_model=ReviewRead, status_code=status.HTTP_201_CREATED)
async def create_review(
    product_id: UUID,
    payload: ReviewCreate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    p = await db.get(ProductModel, product_id)
    if not p:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Product with id {product_id} not found")

    r = ReviewModel(product_id=product_id, user_id=user.id, rating=payload.rating, comment=payload.comment)
    db.add(r)
    await db.commit()
    await db.refresh(r)
    return ReviewRead(
        id=r.id,
        product_id=r.product_id,
        user_id=r.user_id,
        username=user.username,
        rating=r.rating,
        comment=r.comment,
        created_at=r.created_at,
    )
