from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional
from uuid import UUID


class RecipeEntryRead(BaseModel):
    id: UUID
    product_id: UUID
    ingredient_id: UUID
    ingredient_name: Optional[str] = None
    ingredient_stock: Optional[float] = None
    quantity: float
    unit: str


class ProductRead(BaseModel):
    id: UUID
    name: str
    name_en: Optional[str] = None
    description: Optional[str] = None
    price: float
    image_url: Optional[str] = None
    stock_quantity: int = 0
    category_id: Optional[UUID] = None
    category_name: Optional[str] = None
    is_active: bool
    recipe: Optional[List[RecipeEntryRead]] = None


class ProductCreate(BaseModel):
    # is_active is derived from ingredient stock and cannot be set
    model_config = ConfigDict(extra="forbid")

    name: str
    name_en: Optional[str] = None
    description: Optional[str] = None
    price: float = Field(ge=0)
    image_url: Optional[str] = None
    stock_quantity: int = Field(default=0, ge=0)
    category_id: Optional[UUID] = None

    @field_validator("name")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("name is required")
        return v


class ProductUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    name_en: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    image_url: Optional[str] = None
    stock_quantity: Optional[int] = Field(default=None, ge=0)
    category_id: Optional[UUID] = None

    @field_validator("name", "price", "stock_quantity")
    @classmethod
    def _not_null(cls, v):
        # the column is NOT NULL: omit the field to leave it unchanged
        if v is None:
            raise ValueError("cannot be null")
        return v


class RecipeEntryCreate(BaseModel):
    ingredient_id: UUID
    quantity: float = Field(gt=0)
    unit: str = "g"


class RecipeEntryUpdate(BaseModel):
    quantity: Optional[float] = Field(default=None, gt=0)
    unit: Optional[str] = None
