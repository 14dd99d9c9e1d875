import uuid
from datetime import datetime
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from .database import Base


class Product(Base):
    """A drink on the menu.

    `is_active` is derived from ingredient stock by services.availability;
    nothing else writes it.
    """
    __tablename__ = "products"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False, index=True)
    name_en = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    price = Column(Numeric(12, 2), nullable=False)
    image_url = Column(String, nullable=True)
    stock_quantity = Column(Integer, nullable=False, default=0)  # display "cups"
    category_id = Column(UUID(as_uuid=True), ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True)
    is_active = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    category = relationship("Category", back_populates="products")
    recipe_entries = relationship(
        "ProductIngredient",
        back_populates="product",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    reviews = relationship("Review", back_populates="product", cascade="all, delete-orphan", passive_deletes=True)

    @property
    def to_schema(self):
        """Convert Product model to schema dictionary format"""
        return {
            "id": self.id,
            "name": self.name,
            "name_en": self.name_en,
            "description": self.description,
            "price": float(self.price) if self.price is not None else None,
            "image_url": self.image_url,
            "stock_quantity": self.stock_quantity,
            "category_id": self.category_id,
            "is_active": bool(self.is_active),
        }
