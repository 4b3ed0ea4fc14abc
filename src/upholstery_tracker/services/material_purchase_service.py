"""Material Purchase Service - purchases that touch both inventory and expenses.

A material purchase is recorded twice: as a MATERIAL_PURCHASE expense (the
money spent, capitalized) and as a PURCHASE movement blended into the
material's average cost. Both writes happen in one transaction and the
movement references the expense.

A correction can also reverse the linked expense by the value it removed
from inventory.

All functions accept optional session parameter per the service session rules.
"""

from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from ..models import Expense, Material
from ..models.enums import ExpenseCategory, ExpenseTreatment
from .database import session_scope
from . import expense_service, inventory_service
from .inventory_service import raise_if_invalid, resolve_tenant
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)


def purchase_expense_name(material_name: str) -> str:
    return f"Material purchase: {material_name}"


# =============================================================================
# Internal Implementation Functions
# =============================================================================


def _purchase_material_impl(
    material_id: int,
    quantity: float,
    total_cost: float,
    has_invoice: bool,
    date: Optional[datetime],
    payment_method: Optional[str],
    invoice_number: Optional[str],
    supplier: Optional[str],
    supplier_tax_id: Optional[str],
    notes: Optional[str],
    tenant_id: str,
    session: Session,
) -> Tuple[Material, Expense]:
    if quantity is None or quantity <= 0:
        raise_if_invalid("purchase_material", ["quantity must be positive"], material_id=material_id)

    material = inventory_service.get_material(material_id, tenant_id=tenant_id, session=session)

    expense = expense_service.record_expense(
        purchase_expense_name(material.name),
        ExpenseCategory.MATERIAL_PURCHASE,
        total_cost,
        date=date,
        has_invoice=has_invoice,
        payment_method=payment_method,
        invoice_number=invoice_number,
        supplier=supplier,
        supplier_tax_id=supplier_tax_id,
        notes=notes,
        tenant_id=tenant_id,
        session=session,
    )
    material = inventory_service.record_purchase(
        material_id,
        quantity,
        total_cost,
        reference_id=expense.id,
        occurred_at=expense.date,
        tenant_id=tenant_id,
        session=session,
    )

    log_operation(
        logger, operation="purchase_material", outcome="success",
        material_id=material_id, expense_id=expense.id, has_invoice=bool(has_invoice),
    )
    return material, expense


def _correct_purchase_impl(
    material_id: int,
    quantity: float,
    reason: str,
    expense_id: Optional[int],
    tenant_id: str,
    session: Session,
) -> float:
    if expense_id is not None:
        # Fail before touching inventory if the expense is unknown or not a purchase
        expense = expense_service.get_expense(expense_id, tenant_id=tenant_id, session=session)
        if expense.category.treatment is not ExpenseTreatment.CAPITALIZED:
            raise_if_invalid(
                "correct_purchase",
                [f"expense {expense_id} is not a material purchase"],
                material_id=material_id,
                expense_id=expense_id,
            )

    cost_removed = inventory_service.register_correction(
        material_id, quantity, reason, tenant_id=tenant_id, session=session
    )
    if expense_id is not None and cost_removed > 0:
        expense_service.reduce_expense(
            expense_id, cost_removed, tenant_id=tenant_id, session=session
        )

    log_operation(
        logger, operation="correct_purchase", outcome="success",
        material_id=material_id, expense_id=expense_id, cost_removed=cost_removed,
    )
    return cost_removed


# =============================================================================
# Public API
# =============================================================================


def purchase_material(
    material_id: int,
    quantity: float,
    total_cost: float,
    has_invoice: bool = False,
    date: Optional[datetime] = None,
    payment_method: Optional[str] = None,
    invoice_number: Optional[str] = None,
    supplier: Optional[str] = None,
    supplier_tax_id: Optional[str] = None,
    notes: Optional[str] = None,
    tenant_id: Optional[str] = None,
    session: Optional[Session] = None,
) -> Tuple[Material, Expense]:
    """
    Buy stock of an existing material.

    Records a MATERIAL_PURCHASE expense for total_cost and blends the
    purchase into the material, linking the PURCHASE movement to the expense.

    Args:
        material_id: Material receiving the stock
        quantity: Units bought (> 0)
        total_cost: Total paid (> 0, an expense needs a positive amount)
        has_invoice: True when backed by a supplier invoice (tax deductible)
        date: When it was paid (defaults to now)
        payment_method, invoice_number, supplier, supplier_tax_id, notes: Expense details
        tenant_id: Tenant, defaults to the configured tenant
        session: Optional database session

    Returns:
        Tuple of (updated Material, created Expense)

    Raises:
        MaterialNotFound: If the material doesn't exist
        ValidationError: If quantity or total_cost are invalid
    """
    tenant_id = resolve_tenant(tenant_id)
    args = (
        material_id, quantity, total_cost, has_invoice, date, payment_method,
        invoice_number, supplier, supplier_tax_id, notes, tenant_id,
    )
    if session is not None:
        return _purchase_material_impl(*args, session)
    with session_scope() as sess:
        return _purchase_material_impl(*args, sess)


def purchase_new_material(
    name: str,
    kind,
    unit,
    quantity: float,
    total_cost: float,
    min_stock: float = 0.0,
    has_invoice: bool = False,
    date: Optional[datetime] = None,
    payment_method: Optional[str] = None,
    invoice_number: Optional[str] = None,
    supplier: Optional[str] = None,
    supplier_tax_id: Optional[str] = None,
    notes: Optional[str] = None,
    tenant_id: Optional[str] = None,
    session: Optional[Session] = None,
) -> Tuple[Material, Expense]:
    """
    Create a material and record its first purchase in one transaction.

    Returns:
        Tuple of (created Material, created Expense)

    Raises:
        ValidationError: If the material or purchase data is invalid
    """
    tenant_id = resolve_tenant(tenant_id)

    def _do_purchase(sess: Session) -> Tuple[Material, Expense]:
        material = inventory_service.create_material(
            name, kind, unit, min_stock=min_stock, tenant_id=tenant_id, session=sess
        )
        return _purchase_material_impl(
            material.id, quantity, total_cost, has_invoice, date, payment_method,
            invoice_number, supplier, supplier_tax_id, notes, tenant_id, sess,
        )

    if session is not None:
        return _do_purchase(session)
    with session_scope() as sess:
        return _do_purchase(sess)


def correct_purchase(
    material_id: int,
    quantity: float,
    reason: str,
    expense_id: Optional[int] = None,
    tenant_id: Optional[str] = None,
    session: Optional[Session] = None,
) -> float:
    """
    Register a correction and reverse the linked purchase expense.

    The expense (when given) is reduced by the value the correction removed
    from inventory, and deleted if nothing remains.

    Returns:
        cost_removed

    Raises:
        MaterialNotFound: If the material doesn't exist
        ExpenseNotFound: If expense_id doesn't exist
        ValidationError: If expense_id is not a Material Purchase expense
        InsufficientStock: If quantity exceeds the stock on hand
    """
    tenant_id = resolve_tenant(tenant_id)
    if session is not None:
        return _correct_purchase_impl(material_id, quantity, reason, expense_id, tenant_id, session)
    with session_scope() as sess:
        return _correct_purchase_impl(material_id, quantity, reason, expense_id, tenant_id, sess)
