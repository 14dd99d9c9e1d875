from fastapi import APIRouter, Depends, HTTPException, status, Response
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
from uuid import UUID

from core.auth import current_active_superuser
from db.database import get_async_session, Category as CategoryModel
from db.users import User
from schemas.categories import CategoryRead, CategoryCreate, CategoryUpdate

router = APIRouter()


@router.get("/", response_model=List[CategoryRead])
async def list_categories(db: AsyncSession = Depends(get_async_session)):
    res = await db.execute(select(CategoryModel).order_by(func.lower(CategoryModel.name).asc()))
    return [CategoryRead(**c.to_schema) for c in res.scalars().all()]


@router.post("/", response_model=CategoryRead, status_code=status.HTTP_201_CREATED)
async def create_category(
    payload: CategoryCreate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    name = (payload.name or "").strip()
    if not name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="name is required")

    existing = await db.execute(select(CategoryModel).where(func.lower(CategoryModel.name) == name.lower()))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Category already exists")

    m = CategoryModel(name=name, name_en=payload.name_en, description=payload.description)
    db.add(m)
    await db.commit()
    await db.refresh(m)
    return CategoryRead(**m.to_schema)


@router.patch("/{category_id}", response_model=CategoryRead)
async def update_category(
    category_id: UUID,
    payload: CategoryUpdate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    res = await db.execute(select(CategoryModel).where(CategoryModel.id == category_id))
    m = res.scalar_one_or_none()
    if not m:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")

    data = payload.model_dump(exclude_unset=True)
    if "name" in data and data["name"] is not None:
        name = data["name"].strip()
        if not name:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="name is required")
        taken = await db.execute(
            select(CategoryModel.id)
            .where(func.lower(CategoryModel.name) == name.lower())
            .where(CategoryModel.id != category_id)
        )
        if taken.first():
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Category already exists")
        m.name = name
    if "name_en" in data:
        m.name_en = data["name_en"]
    if "description" in data:
        m.description = data["description"]

    await db.commit()
    await db.refresh(m)
    return CategoryRead(**m.to_schema)


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(
    category_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    res = await db.execute(select(CategoryModel).where(CategoryModel.id == category_id))
    m = res.scalar_one_or_none()
    if not m:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
    # products keep existing with category_id SET NULL
    await db.delete(m)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
