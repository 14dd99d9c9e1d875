"""Inventory errors raised by the services package.

Each error knows its HTTP status and a machine-readable code; main.py turns
them into responses with an English and a Vietnamese message.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional
from uuid import UUID


def _fmt(x: Decimal) -> str:
    # 30.000 -> "30", 2.500 -> "2.5"
    x = Decimal(x)
    if x == x.to_integral_value():
        return str(x.quantize(Decimal(1)))
    return format(x.normalize(), "f")


@dataclass(frozen=True)
class Shortage:
    ingredient_id: UUID
    name: str
    required: Decimal
    available: Decimal

    def to_dict(self) -> dict:
        return {
            "ingredient_id": str(self.ingredient_id),
            "name": self.name,
            "required": float(self.required),
            "available": float(self.available),
        }


class InventoryError(Exception):
    status_code = 400
    code = "inventory_error"

    def __init__(self, message: str, message_vi: Optional[str] = None):
        self.message = message
        self.message_vi = message_vi or message
        super().__init__(message)

    def to_detail(self) -> dict:
        return {"code": self.code, "message": self.message, "message_vi": self.message_vi}


class InsufficientStockError(InventoryError):
    """One or more ingredients cannot cover the requested deduction; nothing was written."""
    status_code = 409
    code = "insufficient_stock"

    def __init__(self, shortages: List[Shortage]):
        self.shortages = list(shortages)
        parts_en = ", ".join(
            f"{s.name} (need: {_fmt(s.required)}, have: {_fmt(s.available)})" for s in self.shortages
        )
        parts_vi = ", ".join(
            f"{s.name} (cần: {_fmt(s.required)}, có: {_fmt(s.available)})" for s in self.shortages
        )
        super().__init__(
            f"Insufficient stock: {parts_en}",
            f"Không đủ nguyên liệu: {parts_vi}",
        )

    def to_detail(self) -> dict:
        detail = super().to_detail()
        detail["shortages"] = [s.to_dict() for s in self.shortages]
        return detail


class EmptyOrderError(InventoryError):
    status_code = 422
    code = "empty_order"

    def __init__(self, order_id: UUID):
        self.order_id = order_id
        super().__init__(
            f"Order {order_id} has no items",
            f"Đơn hàng {order_id} không có sản phẩm nào",
        )


class NotFoundError(InventoryError):
    status_code = 404
    code = "not_found"

    def __init__(self, entity: str, entity_id: UUID):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            f"{entity.capitalize()} with id {entity_id} not found",
            f"Không tìm thấy {entity} {entity_id}",
        )


class ConcurrencyConflictError(InventoryError):
    """Stock changed between the sufficiency check and the write."""
    status_code = 503
    code = "inventory_not_reconciled"

    def __init__(self, ingredient_id: Optional[UUID] = None, attempts: int = 1):
        self.ingredient_id = ingredient_id
        self.attempts = attempts
        super().__init__(
            "Order was not completed: inventory changed concurrently, please retry",
            "Đơn hàng chưa hoàn thành: kho nguyên liệu vừa thay đổi, vui lòng thử lại",
        )


class AlreadyReconciledError(InventoryError):
    """Ingredients for this order were already deducted."""
    status_code = 409
    code = "already_reconciled"

    def __init__(self, order_id: UUID):
        self.order_id = order_id
        super().__init__(
            f"Ingredients for order {order_id} were already deducted",
            f"Nguyên liệu của đơn hàng {order_id} đã được trừ",
        )


class InvalidStatusTransitionError(InventoryError):
    status_code = 409
    code = "invalid_status_transition"

    def __init__(self, order_id: UUID, current: str, requested: str):
        self.order_id = order_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Order {order_id} cannot move from {current} to {requested}: ingredients were already deducted",
            f"Đơn hàng {order_id} không thể chuyển từ {current} sang {requested}: nguyên liệu đã được trừ",
        )
