"""Order Service - work order ledger and payment ledger.

Creating an order consumes its product's recipe from inventory and freezes
the cost of every material line at the current average cost. That frozen
cost is the order's cost of goods and is never recalculated.

Order lifecycle:
    IN_PROGRESS -> FINISHED -> DELIVERED / PARTIALLY_DELIVERED -> FULLY_PAID
    any non-terminal state -> RETURNED / MANUFACTURING_ERROR (cancel_order)
    any state -> gone (delete_order, full erasure)

All functions accept an optional session parameter:
- If session provided: caller owns transaction, don't commit
- If session is None: create own transaction via session_scope()

Store failures while writing an order (or erasing one) roll back the
session transaction and surface as PersistenceFailure. When a session is
passed in, that rollback covers the caller's pending work too.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..models import InventoryMovement, Material, Order, OrderItem, Payment
from ..models.enums import (
    InvoiceType,
    MovementKind,
    OrderState,
    PaymentMethod,
    ReferenceType,
)
from ..utils.datetime_utils import to_naive_utc, utc_now_naive
from . import costing
from .database import session_scope
from .exceptions import (
    InsufficientStock,
    InvalidAmount,
    InvalidStateTransition,
    OrderNotFound,
    PersistenceFailure,
)
from .inventory_service import (
    append_movement,
    coerce_enum,
    get_material_for_update,
    raise_if_invalid,
    resolve_tenant,
)
from .logging_utils import get_service_logger, log_operation
from .product_service import find_shortfalls, get_product_for_update, recipe_lines

logger = get_service_logger(__name__)

CANCELLATION_STATES = (OrderState.RETURNED, OrderState.MANUFACTURING_ERROR)


def get_order_for_update(session: Session, order_id: int, tenant_id: str) -> Order:
    """Load an order with its lines and payments or raise OrderNotFound."""
    order = (
        session.query(Order)
        .options(selectinload(Order.materials_used), selectinload(Order.payments))
        .filter(Order.id == order_id, Order.tenant_id == tenant_id)
        .first()
    )
    if order is None:
        raise OrderNotFound(order_id)
    return order


def _deduct_stock(material: Material, quantity: float) -> None:
    # Consumption never touches the average cost
    material.quantity_on_hand = costing.clamp_non_negative(material.quantity_on_hand - quantity)


def _restore_stock(material: Material, quantity: float) -> None:
    material.quantity_on_hand = material.quantity_on_hand + quantity


def _persistence_failure(session: Session, operation: str, error: SQLAlchemyError, **context):
    session.rollback()
    log_operation(
        logger, operation=operation, outcome="error", level=logging.ERROR,
        error=str(error), **context,
    )
    return PersistenceFailure(f"{operation} failed: {error}", original_error=error)


# =============================================================================
# Internal Implementation Functions
# =============================================================================


def _create_order_impl(
    product_id: int,
    sale_price: float,
    down_payment: float,
    invoice_type,
    client_name: Optional[str],
    client_id_number: Optional[str],
    client_phone: Optional[str],
    client_address: Optional[str],
    vehicle: Optional[str],
    notes: Optional[str],
    created_at: Optional[datetime],
    tenant_id: str,
    session: Session,
) -> Order:
    product = get_product_for_update(session, product_id, tenant_id)

    errors = []
    if sale_price is None or sale_price < 0:
        errors.append("sale_price cannot be negative")
    if down_payment is None or down_payment < 0:
        errors.append("down_payment cannot be negative")
    elif sale_price is not None and down_payment > sale_price:
        errors.append("down_payment cannot exceed sale_price")
    invoice_type = coerce_enum(InvoiceType, invoice_type, "invoice_type", errors)
    raise_if_invalid("create_order", errors, product_id=product_id)

    shortfalls = find_shortfalls(session, product, tenant_id)
    if shortfalls:
        log_operation(
            logger, operation="create_order", outcome="insufficient_stock",
            level=logging.WARNING, product_id=product_id,
            missing_materials=[s.material_name for s in shortfalls],
        )
        raise InsufficientStock(shortfalls)

    created_at = to_naive_utc(created_at) or utc_now_naive()
    try:
        order = Order(
            tenant_id=tenant_id,
            product_id=product.id,
            job_type=product.name,
            client_name=client_name,
            client_id_number=client_id_number,
            client_phone=client_phone,
            client_address=client_address,
            vehicle=vehicle,
            sale_price=sale_price,
            down_payment=down_payment,
            balance=sale_price - down_payment,
            invoice_type=invoice_type,
            state=OrderState.IN_PROGRESS,
            notes=notes,
            created_at=created_at,
            payments=[],
        )
        session.add(order)

        consumed = []
        for material_id, quantity in recipe_lines(product):
            material = get_material_for_update(session, material_id, tenant_id)
            item = OrderItem(
                tenant_id=tenant_id,
                material_id=material.id,
                quantity=quantity,
                computed_cost=quantity * material.avg_unit_cost,
            )
            order.materials_used.append(item)
            _deduct_stock(material, quantity)
            consumed.append((material, item))

        session.flush()
    except SQLAlchemyError as e:
        raise _persistence_failure(session, "create_order", e, product_id=product_id)

    for material, item in consumed:
        append_movement(
            session, material, MovementKind.CONSUMPTION, item.quantity, item.computed_cost,
            reference_id=order.id, reference_type=ReferenceType.ORDER, occurred_at=created_at,
        )

    log_operation(
        logger, operation="create_order", outcome="success",
        order_id=order.id, product_id=product_id, cost_of_goods=order.cost_of_goods,
    )
    return order


def _transition_state_impl(order_id: int, new_state, tenant_id: str, session: Session) -> Order:
    order = get_order_for_update(session, order_id, tenant_id)
    errors = []
    requested = coerce_enum(OrderState, new_state, "state", errors)
    raise_if_invalid("transition_state", errors, order_id=order_id)

    if requested.is_terminal or order.state.is_terminal:
        log_operation(
            logger, operation="transition_state", outcome="rejected", level=logging.WARNING,
            order_id=order_id, current=order.state.value, requested=requested.value,
        )
        raise InvalidStateTransition(order_id, order.state, requested)

    order.state = requested
    session.flush()
    log_operation(
        logger, operation="transition_state", outcome="success",
        order_id=order_id, state=requested.value,
    )
    return order


def _register_payment_impl(
    order_id: int,
    amount: float,
    method,
    has_invoice: bool,
    notes: Optional[str],
    paid_at: Optional[datetime],
    tenant_id: str,
    session: Session,
) -> Order:
    order = get_order_for_update(session, order_id, tenant_id)

    if amount is None or amount < 0 or amount > order.sale_price:
        log_operation(
            logger, operation="register_payment", outcome="invalid_amount",
            level=logging.WARNING, order_id=order_id, amount=amount,
        )
        raise InvalidAmount(amount, order.sale_price)
    if order.state.is_terminal:
        raise InvalidStateTransition(order_id, order.state, OrderState.FULLY_PAID)

    errors = []
    method = coerce_enum(PaymentMethod, method, "method", errors)
    raise_if_invalid("register_payment", errors, order_id=order_id)

    if amount > 0:
        order.payments.append(
            Payment(
                tenant_id=tenant_id,
                amount=amount,
                method=method,
                has_invoice=bool(has_invoice),
                notes=notes,
                date=to_naive_utc(paid_at) or utc_now_naive(),
            )
        )

    # Any qualifying payment settles the order in full
    order.balance = 0.0
    order.state = OrderState.FULLY_PAID
    session.flush()

    log_operation(
        logger, operation="register_payment", outcome="success",
        order_id=order_id, amount=amount, has_invoice=bool(has_invoice),
    )
    return order


def _cancel_order_impl(order_id: int, reason, tenant_id: str, session: Session) -> Order:
    order = get_order_for_update(session, order_id, tenant_id)

    errors = []
    reason = coerce_enum(OrderState, reason, "reason", errors)
    if reason is not None and reason not in CANCELLATION_STATES:
        errors.append(f"reason must be one of {[s.value for s in CANCELLATION_STATES]}")
    raise_if_invalid("cancel_order", errors, order_id=order_id)

    if order.state.is_terminal:
        raise InvalidStateTransition(order_id, order.state, reason)

    removed = len(order.payments)
    order.payments.clear()
    order.state = reason
    order.balance = 0.0
    session.flush()

    log_operation(
        logger, operation="cancel_order", outcome="success",
        order_id=order_id, reason=reason.value, payments_removed=removed,
    )
    return order


def _delete_order_impl(order_id: int, tenant_id: str, session: Session) -> None:
    order = get_order_for_update(session, order_id, tenant_id)

    try:
        for item in order.materials_used:
            material = (
                session.query(Material)
                .filter(Material.id == item.material_id, Material.tenant_id == tenant_id)
                .first()
            )
            if material is not None:
                # Quantity only; the cost basis at consumption time is not restored
                _restore_stock(material, item.quantity)

        order.payments.clear()
        order.materials_used.clear()
        session.flush()

        session.query(InventoryMovement).filter(
            InventoryMovement.tenant_id == tenant_id,
            InventoryMovement.reference_type == ReferenceType.ORDER,
            InventoryMovement.reference_id == order_id,
        ).delete(synchronize_session=False)

        session.delete(order)
        session.flush()
    except SQLAlchemyError as e:
        raise _persistence_failure(session, "delete_order", e, order_id=order_id)

    log_operation(logger, operation="delete_order", outcome="success", order_id=order_id)


# =============================================================================
# Public API
# =============================================================================


def create_order(
    product_id: int,
    sale_price: float,
    down_payment: float = 0.0,
    invoice_type=InvoiceType.FINAL_CONSUMER,
    client_name: Optional[str] = None,
    client_id_number: Optional[str] = None,
    client_phone: Optional[str] = None,
    client_address: Optional[str] = None,
    vehicle: Optional[str] = None,
    notes: Optional[str] = None,
    created_at: Optional[datetime] = None,
    tenant_id: Optional[str] = None,
    session: Optional[Session] = None,
) -> Order:
    """
    Create a work order and consume its product's recipe.

    Steps:
        1. Check every recipe line against current stock; if anything is short,
           raise InsufficientStock with all shortfalls before writing anything
        2. Freeze computed_cost = quantity x avg_unit_cost per line
        3. Deduct each quantity from its material (average cost unchanged)
        4. Persist the order with balance = sale_price - down_payment and
           state IN_PROGRESS
        5. Append one CONSUMPTION movement per line

    Steps 2-4 are one unit of work: a store failure rolls all of them back
    and raises PersistenceFailure.

    Args:
        product_id: Product being manufactured
        sale_price: Agreed sale value (>= 0)
        down_payment: Amount paid up front (0 <= down_payment <= sale_price)
        invoice_type: Receipt type requested by the client
        client_name, client_id_number, client_phone, client_address, vehicle: Client info
        notes: Free text
        created_at: Optional creation timestamp (defaults to now)
        tenant_id: Tenant, defaults to the configured tenant
        session: Optional database session

    Returns:
        Created Order with materials_used

    Raises:
        ProductNotFound: If the product doesn't exist
        ValidationError: If prices are invalid
        InsufficientStock: If any recipe material is short
        PersistenceFailure: If the store fails while writing
    """
    tenant_id = resolve_tenant(tenant_id)
    args = (
        product_id, sale_price, down_payment, invoice_type,
        client_name, client_id_number, client_phone, client_address, vehicle,
        notes, created_at, tenant_id,
    )
    if session is not None:
        return _create_order_impl(*args, session)
    with session_scope() as sess:
        return _create_order_impl(*args, sess)


def transition_state(
    order_id: int,
    new_state,
    tenant_id: Optional[str] = None,
    session: Optional[Session] = None,
) -> Order:
    """
    Move an order forward (e.g. IN_PROGRESS -> FINISHED).

    Plain overwrite with no inventory or money effects. Terminal states are
    reached only through cancel_order, and terminal orders don't move.

    Raises:
        OrderNotFound: If the order doesn't exist
        InvalidStateTransition: For terminal targets or terminal orders
    """
    tenant_id = resolve_tenant(tenant_id)
    if session is not None:
        return _transition_state_impl(order_id, new_state, tenant_id, session)
    with session_scope() as sess:
        return _transition_state_impl(order_id, new_state, tenant_id, sess)


def register_payment(
    order_id: int,
    amount: float,
    method=PaymentMethod.CASH,
    has_invoice: bool = False,
    notes: Optional[str] = None,
    paid_at: Optional[datetime] = None,
    tenant_id: Optional[str] = None,
    session: Optional[Session] = None,
) -> Order:
    """
    Register the sale value of an order in the payment ledger.

    A Payment is appended when amount > 0. The order is then settled in
    full: balance 0 and state FULLY_PAID, whatever the amount.

    Args:
        order_id: Order being paid
        amount: Amount received, 0 <= amount <= sale_price
        method: PaymentMethod
        has_invoice: True when the payment is invoice-backed (declared ledger)
        notes: Free text
        paid_at: Optional payment timestamp (defaults to now)

    Returns:
        Updated Order

    Raises:
        OrderNotFound: If the order doesn't exist
        InvalidAmount: If amount is outside [0, sale_price]
        InvalidStateTransition: If the order was cancelled
    """
    tenant_id = resolve_tenant(tenant_id)
    args = (order_id, amount, method, has_invoice, notes, paid_at, tenant_id)
    if session is not None:
        return _register_payment_impl(*args, session)
    with session_scope() as sess:
        return _register_payment_impl(*args, sess)


def cancel_order(
    order_id: int,
    reason,
    tenant_id: Optional[str] = None,
    session: Optional[Session] = None,
) -> Order:
    """
    Cancel an order as RETURNED or MANUFACTURING_ERROR.

    The order's payments are deleted (the money is reversed) and the balance
    becomes 0. Inventory, order lines and movements are untouched since the
    materials were already consumed.

    Raises:
        OrderNotFound: If the order doesn't exist
        ValidationError: If reason is not a cancellation state
        InvalidStateTransition: If the order is already cancelled
    """
    tenant_id = resolve_tenant(tenant_id)
    if session is not None:
        return _cancel_order_impl(order_id, reason, tenant_id, session)
    with session_scope() as sess:
        return _cancel_order_impl(order_id, reason, tenant_id, sess)


def delete_order(
    order_id: int, tenant_id: Optional[str] = None, session: Optional[Session] = None
) -> None:
    """
    Erase an order as if it never existed.

    Consumed quantities go back to their materials (average cost is not
    recalculated), then payments, order lines, the order's movements and the
    order itself are deleted.

    Raises:
        OrderNotFound: If the order doesn't exist
        PersistenceFailure: If the store fails while erasing
    """
    tenant_id = resolve_tenant(tenant_id)
    if session is not None:
        return _delete_order_impl(order_id, tenant_id, session)
    with session_scope() as sess:
        return _delete_order_impl(order_id, tenant_id, sess)


def get_order(
    order_id: int, tenant_id: Optional[str] = None, session: Optional[Session] = None
) -> Order:
    """
    Get an order with its materials_used and payments.

    Raises:
        OrderNotFound: If the order doesn't exist in the tenant
    """
    tenant_id = resolve_tenant(tenant_id)
    if session is not None:
        return get_order_for_update(session, order_id, tenant_id)
    with session_scope() as sess:
        return get_order_for_update(sess, order_id, tenant_id)


def list_orders(
    state=None, tenant_id: Optional[str] = None, session: Optional[Session] = None
) -> List[Order]:
    """List the tenant's orders, newest first, optionally filtered by state."""
    tenant_id = resolve_tenant(tenant_id)

    def _do_query(sess: Session) -> List[Order]:
        query = (
            sess.query(Order)
            .options(selectinload(Order.materials_used), selectinload(Order.payments))
            .filter(Order.tenant_id == tenant_id)
        )
        if state is not None:
            query = query.filter(Order.state == OrderState(state))
        return query.order_by(Order.created_at.desc(), Order.id.desc()).all()

    if session is not None:
        return _do_query(session)
    with session_scope() as sess:
        return _do_query(sess)


def list_payments(
    order_id: Optional[int] = None,
    tenant_id: Optional[str] = None,
    session: Optional[Session] = None,
) -> List[Payment]:
    """List the tenant's payments by date, optionally for one order."""
    tenant_id = resolve_tenant(tenant_id)

    def _do_query(sess: Session) -> List[Payment]:
        query = sess.query(Payment).filter(Payment.tenant_id == tenant_id)
        if order_id is not None:
            query = query.filter(Payment.order_id == order_id)
        return query.order_by(Payment.date, Payment.id).all()

    if session is not None:
        return _do_query(session)
    with session_scope() as sess:
        return _do_query(sess)
