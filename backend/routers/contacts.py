from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from uuid import UUID

from core.auth import current_active_superuser
from db.database import get_async_session, Contact as ContactModel
from db.users import User
from schemas.contacts import ContactCreate, ContactRead, ContactUpdate

router = APIRouter()


@router.post("/", response_model=ContactRead, status_code=status.HTTP_201_CREATED)
async def submit_contact(payload: ContactCreate, db: AsyncSession = Depends(get_async_session)):
    """Public contact form"""
    m = ContactModel(
        name=payload.name,
        email=payload.email,
        phone=payload.phone,
        subject=payload.subject,
        message=payload.message,
        status="new",
    )
    db.add(m)
    await db.commit()
    await db.refresh(m)
    return ContactRead(**m.to_schema)


@router.get("/", response_model=List[ContactRead])
async def list_contacts(
    status_filter: Optional[str] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    stmt = select(ContactModel).order_by(ContactModel.created_at.desc())
    # "all" is what the back office filter sends for no filter
    if status_filter and status_filter != "all":
        stmt = stmt.where(ContactModel.status == status_filter)
    res = await db.execute(stmt)
    return [ContactRead(**c.to_schema) for c in res.scalars().all()]


@router.patch("/{contact_id}", response_model=ContactRead)
async def update_contact(
    contact_id: UUID,
    payload: ContactUpdate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    m = await db.get(ContactModel, contact_id)
    if not m:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contact not found")
    m.status = payload.status
    await db.commit()
    await db.refresh(m)
    return ContactRead(**m.to_schema)
