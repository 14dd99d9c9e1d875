from pydantic import BaseModel
from typing import Optional
from uuid import UUID


class CategoryRead(BaseModel):
    id: UUID
    name: str
    name_en: Optional[str] = None
    description: Optional[str] = None


class CategoryCreate(BaseModel):
    name: str
    name_en: Optional[str] = None
    description: Optional[str] = None


class CategoryUpdate(BaseModel):
    name: Optional[str] = None
    name_en: Optional[str] = None
    description: Optional[str] = None
