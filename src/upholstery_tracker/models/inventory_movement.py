"""
InventoryMovement model for the append-only material movement log.

Movements are an audit trail. Material and Order records are the source of
truth; movements are never read back to recompute stock or cost.
"""

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship

from upholstery_tracker.utils.datetime_utils import utc_now_naive

from .base import BaseModel
from .enums import MovementKind, ReferenceType


class InventoryMovement(BaseModel):
    """
    InventoryMovement model.

    This model is IMMUTABLE after creation - no updated_at field.

    Attributes:
        material_id: Foreign key to Material
        kind: MovementKind
        quantity: Signed quantity (negative for corrections)
        total_cost: Signed cost (0 for waste)
        date: When the movement happened
        reference_id: Optional id of the order or expense that caused it
        reference_type: Table reference_id points into
        origin: Provenance text (asset origin, correction reason)
    """

    __tablename__ = "inventory_movements"

    # Override BaseModel's updated_at - movements are immutable
    updated_at = None

    material_id = Column(
        Integer,
        ForeignKey("materials.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    kind = Column(SQLEnum(MovementKind), nullable=False)
    quantity = Column(Float, nullable=False)
    total_cost = Column(Float, nullable=False, default=0.0)
    date = Column(DateTime, nullable=False, default=utc_now_naive)

    reference_id = Column(Integer, nullable=True)
    reference_type = Column(SQLEnum(ReferenceType), nullable=True)
    origin = Column(String(300), nullable=True)

    material = relationship("Material", back_populates="movements")

    __table_args__ = (
        Index("idx_movement_reference", "reference_type", "reference_id"),
        Index("idx_movement_tenant_date", "tenant_id", "date"),
    )

    def __repr__(self) -> str:
        """String representation of movement."""
        return (
            f"InventoryMovement(id={self.id}, material_id={self.material_id}, "
            f"kind={self.kind}, quantity={self.quantity}, total_cost={self.total_cost})"
        )
