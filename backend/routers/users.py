from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from core.auth import current_active_superuser
from db.database import get_async_session
from db.users import User
from schemas.users import UserRead

router = APIRouter()

# Profile (/users/me) and role changes (PATCH /users/{id} with is_superuser)
# come from the fastapi-users router mounted in main.py.


@router.get("/", response_model=List[UserRead])
async def list_users(
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    res = await db.execute(select(User).order_by(func.lower(User.email).asc()))
    return [UserRead(**u.to_schema) for u in res.scalars().all()]
