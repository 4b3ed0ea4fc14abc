"""Expense Service - operating expense and material purchase ledger.

Every expense belongs to an ExpenseCategory. The category's treatment decides
how the financial summary reads it: MATERIAL_PURCHASE is capitalized into
inventory, every other category is an operating expense.

All functions accept an optional session parameter:
- If session provided: caller owns transaction, don't commit
- If session is None: create own transaction via session_scope()
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from ..models import Expense
from ..models.enums import ExpenseArea, ExpenseCategory, ExpenseFrequency, ExpenseType
from ..utils.constants import MAX_NAME_LENGTH, MAX_NOTES_LENGTH
from ..utils.datetime_utils import to_naive_utc, utc_now_naive
from .costing import QUANTITY_EPSILON
from .database import session_scope
from .exceptions import ExpenseNotFound
from .inventory_service import coerce_enum, raise_if_invalid, resolve_tenant
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)


def get_expense_for_update(session: Session, expense_id: int, tenant_id: str) -> Expense:
    """Load an expense inside the tenant or raise ExpenseNotFound."""
    expense = (
        session.query(Expense)
        .filter(Expense.id == expense_id, Expense.tenant_id == tenant_id)
        .first()
    )
    if expense is None:
        raise ExpenseNotFound(expense_id)
    return expense


def _record_expense_impl(
    name: str,
    category,
    amount: float,
    date: Optional[datetime],
    has_invoice: bool,
    fixed_or_variable,
    frequency,
    area,
    payment_method: Optional[str],
    invoice_number: Optional[str],
    supplier: Optional[str],
    supplier_tax_id: Optional[str],
    notes: Optional[str],
    tenant_id: str,
    session: Session,
) -> Expense:
    name = (name or "").strip()
    errors = []
    if not name:
        errors.append("name is required")
    elif len(name) > MAX_NAME_LENGTH:
        errors.append(f"name cannot exceed {MAX_NAME_LENGTH} characters")
    if amount is None or amount <= 0:
        errors.append("amount must be positive")
    if notes and len(notes) > MAX_NOTES_LENGTH:
        errors.append(f"notes cannot exceed {MAX_NOTES_LENGTH} characters")
    category = coerce_enum(ExpenseCategory, category, "category", errors)
    fixed_or_variable = coerce_enum(ExpenseType, fixed_or_variable, "fixed_or_variable", errors)
    frequency = coerce_enum(ExpenseFrequency, frequency, "frequency", errors)
    area = coerce_enum(ExpenseArea, area, "area", errors)
    raise_if_invalid("record_expense", errors, expense_name=name)

    expense = Expense(
        tenant_id=tenant_id,
        name=name,
        category=category,
        amount=amount,
        date=to_naive_utc(date) or utc_now_naive(),
        has_invoice=bool(has_invoice),
        fixed_or_variable=fixed_or_variable,
        frequency=frequency,
        area=area,
        payment_method=payment_method,
        invoice_number=invoice_number,
        supplier=supplier,
        supplier_tax_id=supplier_tax_id,
        notes=notes,
    )
    session.add(expense)
    session.flush()

    log_operation(
        logger, operation="record_expense", outcome="success",
        expense_id=expense.id, category=category.value, amount=amount,
        treatment=category.treatment.value,
    )
    return expense


def _reduce_expense_impl(
    expense_id: int, amount: float, tenant_id: str, session: Session
) -> Optional[Expense]:
    errors = []
    if amount is None or amount < 0:
        errors.append("amount cannot be negative")
    raise_if_invalid("reduce_expense", errors, expense_id=expense_id)

    expense = get_expense_for_update(session, expense_id, tenant_id)
    remaining = expense.amount - amount
    if remaining <= QUANTITY_EPSILON:
        session.delete(expense)
        session.flush()
        log_operation(
            logger, operation="reduce_expense", outcome="deleted", expense_id=expense_id
        )
        return None

    expense.amount = remaining
    session.flush()
    log_operation(
        logger, operation="reduce_expense", outcome="success",
        expense_id=expense_id, amount=remaining,
    )
    return expense


# =============================================================================
# Public API
# =============================================================================


def record_expense(
    name: str,
    category,
    amount: float,
    date: Optional[datetime] = None,
    has_invoice: bool = False,
    fixed_or_variable=ExpenseType.VARIABLE,
    frequency=ExpenseFrequency.ONCE,
    area=ExpenseArea.GENERAL,
    payment_method: Optional[str] = None,
    invoice_number: Optional[str] = None,
    supplier: Optional[str] = None,
    supplier_tax_id: Optional[str] = None,
    notes: Optional[str] = None,
    tenant_id: Optional[str] = None,
    session: Optional[Session] = None,
) -> Expense:
    """
    Record an expense.

    Args:
        name: Short description
        category: ExpenseCategory (or its value)
        amount: Amount paid (> 0)
        date: When it was paid (defaults to now)
        has_invoice: True when backed by a supplier invoice (tax deductible)
        fixed_or_variable, frequency, area: Descriptors
        payment_method, invoice_number, supplier, supplier_tax_id, notes: Optional details
        tenant_id: Tenant, defaults to the configured tenant
        session: Optional database session

    Returns:
        Created Expense

    Raises:
        ValidationError: If the name, amount or an enum value is invalid
    """
    tenant_id = resolve_tenant(tenant_id)
    args = (
        name, category, amount, date, has_invoice, fixed_or_variable, frequency, area,
        payment_method, invoice_number, supplier, supplier_tax_id, notes, tenant_id,
    )
    if session is not None:
        return _record_expense_impl(*args, session)
    with session_scope() as sess:
        return _record_expense_impl(*args, sess)


def get_expense(
    expense_id: int, tenant_id: Optional[str] = None, session: Optional[Session] = None
) -> Expense:
    """
    Get an expense by ID.

    Raises:
        ExpenseNotFound: If the expense doesn't exist in the tenant
    """
    tenant_id = resolve_tenant(tenant_id)
    if session is not None:
        return get_expense_for_update(session, expense_id, tenant_id)
    with session_scope() as sess:
        return get_expense_for_update(sess, expense_id, tenant_id)


def list_expenses(
    category=None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    tenant_id: Optional[str] = None,
    session: Optional[Session] = None,
) -> List[Expense]:
    """
    List expenses, most recent first.

    Args:
        category: Optional ExpenseCategory filter
        start: Optional inclusive lower bound on date
        end: Optional inclusive upper bound on date
    """
    tenant_id = resolve_tenant(tenant_id)

    def _do_query(sess: Session) -> List[Expense]:
        query = sess.query(Expense).filter(Expense.tenant_id == tenant_id)
        if category is not None:
            query = query.filter(Expense.category == ExpenseCategory(category))
        if start is not None:
            query = query.filter(Expense.date >= to_naive_utc(start))
        if end is not None:
            query = query.filter(Expense.date <= to_naive_utc(end))
        return query.order_by(Expense.date.desc(), Expense.id.desc()).all()

    if session is not None:
        return _do_query(session)
    with session_scope() as sess:
        return _do_query(sess)


def reduce_expense(
    expense_id: int,
    amount: float,
    tenant_id: Optional[str] = None,
    session: Optional[Session] = None,
) -> Optional[Expense]:
    """
    Reduce an expense by amount, deleting it when nothing remains.

    Used to reverse the part of a purchase expense that a correction removed
    from inventory.

    Returns:
        The updated Expense, or None if it was deleted

    Raises:
        ExpenseNotFound: If the expense doesn't exist
        ValidationError: If amount is negative
    """
    tenant_id = resolve_tenant(tenant_id)
    if session is not None:
        return _reduce_expense_impl(expense_id, amount, tenant_id, session)
    with session_scope() as sess:
        return _reduce_expense_impl(expense_id, amount, tenant_id, sess)
