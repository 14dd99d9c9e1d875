from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel


class AvailabilityChangeRead(BaseModel):
    product_id: UUID
    previous_active: bool
    new_active: bool
    changed: bool


class RestockResponse(BaseModel):
    ingredient_id: UUID
    new_stock: float
    availability: List[AvailabilityChangeRead] = []


class StockMovementRead(BaseModel):
    id: UUID
    ingredient_id: UUID
    ingredient_name: Optional[str] = None
    change: float
    stock_after: float
    reason: Optional[str] = None
    source_type: str
    order_id: Optional[UUID] = None
    created_at: Optional[datetime] = None
    created_by_user_id: Optional[UUID] = None


class LowStockIngredient(BaseModel):
    id: UUID
    name: str
    type: Optional[str] = None
    stock_quantity: float
