"""
Order and OrderItem models for work orders.

An Order records a manufacturing job sold to a client. Its OrderItems are the
materials consumed when the order was created, each with a cost snapshot
frozen at that moment.
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
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from .enums import InvoiceType, OrderState


class Order(BaseModel):
    """
    Work order model.

    Attributes:
        client_name, client_id_number, client_phone, client_address: Client info
        vehicle: Vehicle the job is for
        job_type: Product name at creation time
        product_id: Foreign key to the Product manufactured (nullable for history)
        sale_price: Agreed sale value
        down_payment: Amount paid up front
        balance: Amount still owed
        invoice_type: Receipt type requested by the client
        state: OrderState
        notes: Free text

    Relationships:
        materials_used: One-to-Many with OrderItem (cascade delete)
        payments: One-to-Many with Payment
    """

    __tablename__ = "orders"

    client_name = Column(String(200), nullable=True)
    client_id_number = Column(String(50), nullable=True)
    client_phone = Column(String(50), nullable=True)
    client_address = Column(String(300), nullable=True)
    vehicle = Column(String(200), nullable=True)
    job_type = Column(String(200), nullable=True)

    product_id = Column(
        Integer,
        ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    sale_price = Column(Float, nullable=False, default=0.0)
    down_payment = Column(Float, nullable=False, default=0.0)
    balance = Column(Float, nullable=False, default=0.0)
    invoice_type = Column(
        SQLEnum(InvoiceType), nullable=False, default=InvoiceType.FINAL_CONSUMER
    )
    state = Column(SQLEnum(OrderState), nullable=False, default=OrderState.IN_PROGRESS)
    notes = Column(Text, nullable=True)

    materials_used = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="select",
    )
    payments = relationship(
        "Payment",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="select",
    )

    __table_args__ = (
        Index("idx_order_tenant_created", "tenant_id", "created_at"),
        Index("idx_order_state", "state"),
        CheckConstraint("sale_price >= 0", name="ck_order_sale_price_non_negative"),
        CheckConstraint("down_payment >= 0", name="ck_order_down_payment_non_negative"),
    )

    def __repr__(self) -> str:
        """String representation of order."""
        return f"Order(id={self.id}, job_type='{self.job_type}', state={self.state})"

    @property
    def cost_of_goods(self) -> float:
        """Sum of the frozen material costs of this order."""
        return sum(item.computed_cost or 0.0 for item in self.materials_used)

    def to_dict(self, include_relationships: bool = False) -> dict:
        """
        Convert order to dictionary.

        Args:
            include_relationships: If True, include payments

        Returns:
            Dictionary representation including materials_used
        """
        result = super().to_dict(False)
        result["materials_used"] = [item.to_dict() for item in self.materials_used]
        if include_relationships:
            result["payments"] = [payment.to_dict() for payment in self.payments]
        return result


class OrderItem(BaseModel):
    """
    Material consumed by an order, with its frozen cost snapshot.

    computed_cost equals quantity * material.avg_unit_cost at order creation and
    is never recalculated.
    """

    __tablename__ = "order_items"

    order_id = Column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
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
    computed_cost = Column(Float, nullable=False, default=0.0)

    order = relationship("Order", back_populates="materials_used")
    material = relationship("Material")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_item_quantity_positive"),
    )

    def to_dict(self, include_relationships: bool = False) -> dict:
        return {
            "material_id": self.material_id,
            "quantity": self.quantity,
            "computed_cost": self.computed_cost,
        }
