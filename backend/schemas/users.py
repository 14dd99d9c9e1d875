# Pydantic schemas for user-related requests/responses
# fastapi-users provides the base schemas; profile fields are added here

from datetime import datetime
from uuid import UUID
from fastapi_users import schemas
from typing import Optional


class UserRead(schemas.BaseUser[UUID]):
    username: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    created_at: Optional[datetime] = None


class UserCreate(schemas.BaseUserCreate):
    username: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class UserUpdate(schemas.BaseUserUpdate):
    username: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
