import uuid
from datetime import datetime
from sqlalchemy import JSON, CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from .database import Base


ORDER_STATUSES = ("Pending", "Preparing", "Shipping", "Delivered", "Completed", "Failed")
PAYMENT_METHODS = ("Cash", "Bank Transfer")


class Order(Base):
    __tablename__ = "orders"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    customer_identifier = Column(String, nullable=False, index=True)
    customer_name = Column(String, nullable=True)
    phone = Column(String, nullable=False, index=True)
    address = Column(Text, nullable=False)
    payment_method = Column(Text, nullable=False, default="Cash")  # Cash|Bank Transfer
    notes = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default="Pending", index=True)  # Pending|Preparing|Shipping|Delivered|Completed|Failed
    total_price = Column(Numeric(12, 2), nullable=False, default=0)

    # Set once ingredients have been deducted for this order
    ingredients_deducted_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="orders")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")


class OrderItem(Base):
    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)

    # Snapshots taken at checkout
    product_name = Column(String, nullable=True)
    price = Column(Numeric(12, 2), nullable=False)

    quantity = Column(Integer, nullable=False)
    toppings = Column(JSON, nullable=True)

    order = relationship("Order", back_populates="items")
    product = relationship("Product")
