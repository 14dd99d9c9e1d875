from datetime import datetime
from pydantic import BaseModel, Field, field_validator
from typing import Optional
from uuid import UUID


class IngredientRead(BaseModel):
    id: UUID
    name: str
    type: Optional[str] = None
    stock_quantity: float
    price_per_unit: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class IngredientCreate(BaseModel):
    name: str
    type: Optional[str] = None
    stock_quantity: float = Field(default=0, ge=0)
    price_per_unit: Optional[float] = Field(default=None, ge=0)

    @field_validator("name")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("name is required")
        return v


class IngredientUpdate(BaseModel):
    name: Optional[str] = None
    type: Optional[str] = None
    stock_quantity: Optional[float] = Field(default=None, ge=0)
    price_per_unit: Optional[float] = Field(default=None, ge=0)

    @field_validator("name")
    @classmethod
    def _strip_optional(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if not v:
            raise ValueError("cannot be empty")
        return v


class RestockRequest(BaseModel):
    amount: float = Field(gt=0)
    reason: Optional[str] = None
