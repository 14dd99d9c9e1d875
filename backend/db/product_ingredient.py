import uuid
from sqlalchemy import CheckConstraint, Column, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from .database import Base


class ProductIngredient(Base):
    """Recipe entry: how much of one ingredient a single unit of a product uses"""
    __tablename__ = "product_ingredients"
    __table_args__ = (
        UniqueConstraint("product_id", "ingredient_id", name="ux_product_ingredients_product_ingredient"),
        CheckConstraint("quantity > 0", name="ck_product_ingredients_quantity_positive"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    ingredient_id = Column(UUID(as_uuid=True), ForeignKey("ingredients.id", ondelete="CASCADE"), nullable=False, index=True)

    quantity = Column(Numeric(12, 3), nullable=False)
    unit = Column(String, nullable=False, default="g")

    product = relationship("Product", back_populates="recipe_entries")
    ingredient = relationship("Ingredient", back_populates="recipe_entries")
