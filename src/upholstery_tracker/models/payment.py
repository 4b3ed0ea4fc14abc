"""
Payment model for money received against work orders.
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Index,
    Text,
    CheckConstraint,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship

from upholstery_tracker.utils.datetime_utils import utc_now_naive

from .base import BaseModel
from .enums import PaymentMethod


class Payment(BaseModel):
    """
    Payment model.

    has_invoice belongs to the payment itself and is what classifies the money
    into the declared (tax) ledger; the order's invoice_type plays no part.

    Attributes:
        order_id: Foreign key to Order
        amount: Amount received (> 0)
        method: PaymentMethod
        has_invoice: True when the payment is backed by a tax invoice
        date: When the payment was received
        notes: Free text
    """

    __tablename__ = "payments"

    order_id = Column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount = Column(Float, nullable=False)
    method = Column(SQLEnum(PaymentMethod), nullable=False, default=PaymentMethod.CASH)
    has_invoice = Column(Boolean, nullable=False, default=False)
    date = Column(DateTime, nullable=False, default=utc_now_naive)
    notes = Column(Text, nullable=True)

    order = relationship("Order", back_populates="payments")

    __table_args__ = (
        Index("idx_payment_tenant_date", "tenant_id", "date"),
        CheckConstraint("amount > 0", name="ck_payment_amount_positive"),
    )

    def __repr__(self) -> str:
        """String representation of payment."""
        return (
            f"Payment(id={self.id}, order_id={self.order_id}, "
            f"amount={self.amount}, has_invoice={self.has_invoice})"
        )
