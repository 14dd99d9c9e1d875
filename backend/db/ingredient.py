import uuid
from datetime import datetime
from sqlalchemy import CheckConstraint, Column, DateTime, Numeric, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from .database import Base


class Ingredient(Base):
    """Raw ingredient with its shared stock level"""
    __tablename__ = "ingredients"
    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="ck_ingredients_stock_non_negative"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False, unique=True)
    type = Column(String, nullable=True)  # e.g. "Bột", "Topping", "Sữa"
    stock_quantity = Column(Numeric(12, 3), nullable=False, default=0)
    price_per_unit = Column(Numeric(12, 2), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    recipe_entries = relationship(
        "ProductIngredient",
        back_populates="ingredient",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    movements = relationship("StockMovement", back_populates="ingredient", passive_deletes=True)

    @property
    def to_schema(self):
        """Convert Ingredient model to schema dictionary format"""
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "stock_quantity": float(self.stock_quantity or 0),
            "price_per_unit": float(self.price_per_unit) if self.price_per_unit is not None else None,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
