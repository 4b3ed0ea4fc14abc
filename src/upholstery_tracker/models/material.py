"""
Material model for stocked materials.

A Material holds both the physical stock (quantity_on_hand) and its cost basis
(avg_unit_cost, weighted average). quantity_on_hand * avg_unit_cost is the
capitalized value of the material.
"""

from sqlalchemy import Column, String, Float, Index, CheckConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship

from .base import BaseModel
from .enums import MaterialKind, UnitOfMeasure


class Material(BaseModel):
    """
    Material model representing a stocked raw material.

    Attributes:
        name: Display name, unique per tenant (e.g., "Black Napa Leather")
        kind: MaterialKind classification
        unit: UnitOfMeasure the quantity is counted in
        quantity_on_hand: Current stock
        avg_unit_cost: Weighted-average cost per unit
        min_stock: Threshold for the low-stock alert

    Relationships:
        movements: One-to-Many with InventoryMovement (audit trail)
    """

    __tablename__ = "materials"

    name = Column(String(200), nullable=False)
    kind = Column(SQLEnum(MaterialKind), nullable=False, default=MaterialKind.OTHER)
    unit = Column(SQLEnum(UnitOfMeasure), nullable=False, default=UnitOfMeasure.UNIT)

    quantity_on_hand = Column(Float, nullable=False, default=0.0)
    avg_unit_cost = Column(Float, nullable=False, default=0.0)
    min_stock = Column(Float, nullable=False, default=0.0)

    movements = relationship(
        "InventoryMovement",
        back_populates="material",
        lazy="select",
        order_by="InventoryMovement.date",
    )

    __table_args__ = (
        Index("idx_material_tenant_name", "tenant_id", "name", unique=True),
        CheckConstraint("quantity_on_hand >= 0", name="ck_material_quantity_non_negative"),
        CheckConstraint("avg_unit_cost >= 0", name="ck_material_cost_non_negative"),
        CheckConstraint("min_stock >= 0", name="ck_material_min_stock_non_negative"),
    )

    def __repr__(self) -> str:
        """String representation of material."""
        return (
            f"Material(id={self.id}, name='{self.name}', "
            f"qty={self.quantity_on_hand}, avg_cost={self.avg_unit_cost})"
        )

    @property
    def total_value(self) -> float:
        """Capitalized value of the stock on hand."""
        return (self.quantity_on_hand or 0.0) * (self.avg_unit_cost or 0.0)

    @property
    def is_below_minimum(self) -> bool:
        """True when stock is at or under the configured minimum."""
        return (self.quantity_on_hand or 0.0) <= (self.min_stock or 0.0)

    def to_dict(self, include_relationships: bool = False) -> dict:
        """
        Convert material to dictionary.

        Args:
            include_relationships: If True, include the movement log

        Returns:
            Dictionary representation
        """
        result = super().to_dict(include_relationships)
        result["total_value"] = self.total_value
        return result
