from pydantic import BaseModel
from typing import List
from uuid import UUID


class TopProduct(BaseModel):
    product_id: UUID
    name: str
    cups_sold: int


class DashboardStats(BaseModel):
    products: int
    active_products: int
    users: int
    orders: int
    orders_by_status: dict[str, int]
    revenue: float
    ingredients: int
    cups_sold: int
    low_stock_ingredients: int
    top_products: List[TopProduct]
