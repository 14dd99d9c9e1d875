import re
from datetime import datetime
from pydantic import BaseModel, Field, field_validator
from typing import Dict, List, Literal, Optional
from uuid import UUID

from .inventory import AvailabilityChangeRead


OrderStatus = Literal["Pending", "Preparing", "Shipping", "Delivered", "Completed", "Failed"]
PaymentMethod = Literal["Cash", "Bank Transfer"]

# 10 digits starting 03/05/07/08/09, or the same with 84 instead of 0
VN_PHONE_RE = re.compile(r"^(0[35789])[0-9]{8}$|^(84[35789])[0-9]{8}$")


def normalize_vn_phone(phone: str) -> str:
    digits = re.sub(r"\D", "", phone or "")
    if not VN_PHONE_RE.match(digits):
        raise ValueError("phone must be a Vietnamese number starting with 0 (e.g. 0912345678)")
    return digits


class OrderItemRead(BaseModel):
    id: UUID
    product_id: Optional[UUID] = None
    product_name: Optional[str] = None
    image_url: Optional[str] = None
    quantity: int
    price: float
    toppings: List[str] = []


class OrderRead(BaseModel):
    id: UUID
    user_id: Optional[UUID] = None
    customer_identifier: str
    customer_name: Optional[str] = None
    phone: str
    address: str
    payment_method: str
    notes: Optional[str] = None
    status: str
    total_price: float
    ingredients_deducted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    items: List[OrderItemRead]


class CheckoutItem(BaseModel):
    product_id: UUID
    quantity: int = Field(gt=0)
    toppings: List[str] = []


class CheckoutRequest(BaseModel):
    customer_name: Optional[str] = None
    phone: str
    address: str
    payment_method: PaymentMethod
    notes: Optional[str] = None
    items: List[CheckoutItem]

    @field_validator("phone")
    @classmethod
    def _phone(cls, v: str) -> str:
        return normalize_vn_phone(v)

    @field_validator("address")
    @classmethod
    def _address(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("address is required")
        return v

    @field_validator("items")
    @classmethod
    def _items(cls, v: List[CheckoutItem]) -> List[CheckoutItem]:
        if not v:
            raise ValueError("cart is empty")
        return v


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class DeductionSummaryRead(BaseModel):
    order_id: UUID
    deducted: Dict[str, float]
    availability: List[AvailabilityChangeRead] = []


class OrderStatusResponse(BaseModel):
    order: OrderRead
    previous_status: str
    deduction: Optional[DeductionSummaryRead] = None
