"""Ledger Service - full tenant-scoped fetch into a LedgerSnapshot.

The summary and alert engines fold over complete ledgers, so this loads every
record of the tenant once and converts it to immutable DTOs.
"""

from typing import Optional

from sqlalchemy.orm import Session, selectinload

from ..models import Expense, InventoryMovement, Material, Order, Payment, Product
from .database import session_scope
from .dto import (
    ExpenseRecord,
    LedgerSnapshot,
    MaterialRecord,
    MovementRecord,
    OrderRecord,
    PaymentRecord,
    ProductRecord,
)
from .inventory_service import resolve_tenant
from .logging_utils import get_service_logger

logger = get_service_logger(__name__)


def _load_snapshot_impl(tenant_id: str, session: Session) -> LedgerSnapshot:
    def scoped(model):
        return session.query(model).filter(model.tenant_id == tenant_id)

    snapshot = LedgerSnapshot(
        tenant_id=tenant_id,
        materials=[MaterialRecord.from_model(m) for m in scoped(Material).order_by(Material.id)],
        products=[
            ProductRecord.from_model(p)
            for p in scoped(Product).options(selectinload(Product.recipe)).order_by(Product.id)
        ],
        orders=[
            OrderRecord.from_model(o)
            for o in scoped(Order).options(selectinload(Order.materials_used)).order_by(Order.id)
        ],
        payments=[PaymentRecord.from_model(p) for p in scoped(Payment).order_by(Payment.id)],
        expenses=[ExpenseRecord.from_model(e) for e in scoped(Expense).order_by(Expense.id)],
        movements=[
            MovementRecord.from_model(m)
            for m in scoped(InventoryMovement).order_by(InventoryMovement.id)
        ],
    )
    logger.debug(
        f"Loaded snapshot for tenant '{tenant_id}': {len(snapshot.orders)} orders, "
        f"{len(snapshot.payments)} payments, {len(snapshot.expenses)} expenses"
    )
    return snapshot


def load_snapshot(
    tenant_id: Optional[str] = None, session: Optional[Session] = None
) -> LedgerSnapshot:
    """
    Load every ledger of a tenant.

    Args:
        tenant_id: Tenant, defaults to the configured tenant
        session: Optional database session

    Returns:
        LedgerSnapshot with materials, products, orders, payments, expenses
        and movements of the tenant only
    """
    tenant_id = resolve_tenant(tenant_id)
    if session is not None:
        return _load_snapshot_impl(tenant_id, session)
    with session_scope() as sess:
        return _load_snapshot_impl(tenant_id, sess)
