"""
Expense model for operating expenses and material purchases.

Expenses in the MATERIAL_PURCHASE category fund inventory; they are
capitalized and never counted as operating expenses.
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    Index,
    String,
    Text,
    CheckConstraint,
    Enum as SQLEnum,
)

from upholstery_tracker.utils.datetime_utils import utc_now_naive

from .base import BaseModel
from .enums import (
    ExpenseArea,
    ExpenseCategory,
    ExpenseFrequency,
    ExpenseTreatment,
    ExpenseType,
)


class Expense(BaseModel):
    """
    Expense model.

    Attributes:
        name: Short description
        category: ExpenseCategory
        amount: Amount spent (> 0)
        fixed_or_variable: ExpenseType
        payment_method: How it was paid (free text)
        date: When it was paid
        frequency: ExpenseFrequency
        has_invoice: True when backed by a supplier invoice (tax deductible)
        invoice_number, supplier, supplier_tax_id: Tax information
        area: ExpenseArea impacted
        notes: Free text
    """

    __tablename__ = "expenses"

    name = Column(String(200), nullable=False)
    category = Column(SQLEnum(ExpenseCategory), nullable=False)
    amount = Column(Float, nullable=False)
    fixed_or_variable = Column(SQLEnum(ExpenseType), nullable=False, default=ExpenseType.VARIABLE)
    payment_method = Column(String(50), nullable=True)
    date = Column(DateTime, nullable=False, default=utc_now_naive)
    frequency = Column(SQLEnum(ExpenseFrequency), nullable=False, default=ExpenseFrequency.ONCE)

    has_invoice = Column(Boolean, nullable=False, default=False)
    invoice_number = Column(String(100), nullable=True)
    supplier = Column(String(200), nullable=True)
    supplier_tax_id = Column(String(50), nullable=True)

    area = Column(SQLEnum(ExpenseArea), nullable=False, default=ExpenseArea.GENERAL)
    notes = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_expense_tenant_date", "tenant_id", "date"),
        Index("idx_expense_category", "category"),
        CheckConstraint("amount > 0", name="ck_expense_amount_positive"),
    )

    def __repr__(self) -> str:
        """String representation of expense."""
        return f"Expense(id={self.id}, name='{self.name}', amount={self.amount})"

    @property
    def is_capitalized(self) -> bool:
        return self.category.treatment is ExpenseTreatment.CAPITALIZED
