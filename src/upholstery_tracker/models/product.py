"""
Product and RecipeItem models for manufactured products.

A Product is a service the workshop manufactures (e.g., "Full Seat Cover
Set"); its recipe is the fixed list of materials one unit consumes.
"""

from sqlalchemy import (
    Column,
    String,
    Text,
    Integer,
    Float,
    ForeignKey,
    Index,
    CheckConstraint,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .base import BaseModel


class Product(BaseModel):
    """
    Product model representing a manufactured product.

    Attributes:
        name: Product name
        description: Free text description
        suggested_price: List price, used for margin alerts
        stock: Finished units on hand

    Relationships:
        recipe: One-to-Many with RecipeItem (cascade delete)
    """

    __tablename__ = "products"

    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True, default="")
    suggested_price = Column(Float, nullable=False, default=0.0)
    stock = Column(Float, nullable=False, default=0.0)

    recipe = relationship(
        "RecipeItem",
        back_populates="product",
        cascade="all, delete-orphan",
        lazy="select",
    )

    __table_args__ = (
        Index("idx_product_tenant", "tenant_id"),
        CheckConstraint("suggested_price >= 0", name="ck_product_price_non_negative"),
    )

    def __repr__(self) -> str:
        """String representation of product."""
        return f"Product(id={self.id}, name='{self.name}')"

    def to_dict(self, include_relationships: bool = False) -> dict:
        """
        Convert product to dictionary.

        The recipe is always included since a product is meaningless without it.
        """
        result = super().to_dict(False)
        result["recipe"] = [item.to_dict() for item in self.recipe]
        return result


class RecipeItem(BaseModel):
    """
    One material line of a product recipe.

    Attributes:
        product_id: Foreign key to Product
        material_id: Foreign key to Material
        quantity: Material quantity one product unit consumes
    """

    __tablename__ = "recipe_items"

    product_id = Column(
        Integer,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    material_id = Column(
        Integer,
        ForeignKey("materials.id"),
        nullable=False,
        index=True,
    )
    quantity = Column(Float, nullable=False)

    product = relationship("Product", back_populates="recipe")
    material = relationship("Material")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_recipe_item_quantity_positive"),
        UniqueConstraint("product_id", "material_id", name="uq_recipe_item_material"),
    )

    def to_dict(self, include_relationships: bool = False) -> dict:
        return {"material_id": self.material_id, "quantity": self.quantity}
