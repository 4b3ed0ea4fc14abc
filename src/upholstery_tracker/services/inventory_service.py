"""Inventory Service - weighted-average material ledger.

This module provides business logic for the material ledger: creating
materials, purchases, waste, asset intakes and corrections, plus the
append-only movement log.

All functions are stateless and follow the session pattern:
- If session provided: caller owns transaction, don't commit
- If session is None: create own transaction via session_scope()

Costing:
- Purchases and asset intakes blend into the weighted average cost
- Waste keeps total value constant and raises the average
- Corrections remove quantity and its value, average unchanged
- Every mutation appends an InventoryMovement (best-effort audit trail)

Example Usage:
    >>> from upholstery_tracker.services import inventory_service
    >>> material = inventory_service.create_material("Black Vinyl", "Vinyl", "Meter")
    >>> material = inventory_service.record_purchase(material.id, 10, 40.0)
    >>> material.avg_unit_cost
    4.0
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import InventoryMovement, Material
from ..models.enums import MaterialKind, MovementKind, ReferenceType, UnitOfMeasure
from ..utils.config import get_default_tenant_id
from ..utils.constants import MAX_NAME_LENGTH, ORIGIN_ASSET, ORIGIN_RECOVERED_ASSET
from ..utils.datetime_utils import to_naive_utc, utc_now_naive
from . import costing
from .costing import Shortfall
from .database import session_scope
from .exceptions import InsufficientStock, MaterialNotFound, ValidationError
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)

UPDATABLE_FIELDS = ("name", "kind", "unit", "min_stock")


# =============================================================================
# Shared helpers
# =============================================================================


def resolve_tenant(tenant_id: Optional[str]) -> str:
    """Return tenant_id, or the configured tenant when None."""
    return tenant_id or get_default_tenant_id()


def get_material_for_update(session: Session, material_id: int, tenant_id: str) -> Material:
    """Load a material inside the tenant or raise MaterialNotFound."""
    material = (
        session.query(Material)
        .filter(Material.id == material_id, Material.tenant_id == tenant_id)
        .first()
    )
    if material is None:
        raise MaterialNotFound(material_id)
    return material


def append_movement(
    session: Session,
    material: Material,
    kind: MovementKind,
    quantity: float,
    total_cost: float,
    reference_id: Optional[int] = None,
    reference_type: Optional[ReferenceType] = None,
    origin: Optional[str] = None,
    occurred_at: Optional[datetime] = None,
) -> Optional[InventoryMovement]:
    """
    Append a movement to the audit trail inside a SAVEPOINT.

    Pending changes are flushed first so that a failure here only rolls back
    the movement. Failures are logged at ERROR and swallowed.

    Returns:
        The flushed InventoryMovement, or None if the append failed
    """
    session.flush()
    movement = InventoryMovement(
        tenant_id=material.tenant_id,
        material_id=material.id,
        kind=kind,
        quantity=quantity,
        total_cost=total_cost,
        reference_id=reference_id,
        reference_type=reference_type,
        origin=origin,
        date=to_naive_utc(occurred_at) or utc_now_naive(),
    )
    try:
        with session.begin_nested():
            session.add(movement)
    except SQLAlchemyError as e:
        log_operation(
            logger,
            operation="append_movement",
            outcome="error",
            level=logging.ERROR,
            material_id=material.id,
            kind=kind.value,
            error=str(e),
        )
        return None
    return movement


def _validate_positive(field: str, value: float, errors: List[str]) -> None:
    if value is None or value <= 0:
        errors.append(f"{field} must be positive")


def _validate_non_negative(field: str, value: float, errors: List[str]) -> None:
    if value is None or value < 0:
        errors.append(f"{field} cannot be negative")


def coerce_enum(enum_cls, value, field: str, errors: List[str]):
    """Convert a value to enum_cls, recording an error instead of raising."""
    try:
        return enum_cls(value)
    except ValueError:
        errors.append(f"{field} '{value}' is not valid")
        return None


def raise_if_invalid(operation: str, errors: List[str], **context: Any) -> None:
    """Log and raise ValidationError when errors were collected."""
    if errors:
        log_operation(
            logger, operation=operation, outcome="validation_failed", level=logging.WARNING,
            errors=errors, **context,
        )
        raise ValidationError(errors)


def _require_stock(operation: str, material: Material, quantity: float) -> None:
    if quantity > material.quantity_on_hand:
        log_operation(
            logger, operation=operation, outcome="insufficient_stock", level=logging.WARNING,
            material_id=material.id, required=quantity, available=material.quantity_on_hand,
        )
        raise InsufficientStock(
            [Shortfall(material.id, material.name, quantity, material.quantity_on_hand)]
        )


def _find_by_name(session: Session, name: str, tenant_id: str) -> Optional[Material]:
    return (
        session.query(Material)
        .filter(Material.tenant_id == tenant_id, Material.name == name)
        .first()
    )


# =============================================================================
# Internal Implementation Functions
# =============================================================================


def _create_material_impl(
    name: str,
    kind,
    unit,
    min_stock: float,
    created_at: Optional[datetime],
    tenant_id: str,
    session: Session,
) -> Material:
    name = (name or "").strip()
    errors = []
    if not name:
        errors.append("name is required")
    elif len(name) > MAX_NAME_LENGTH:
        errors.append(f"name cannot exceed {MAX_NAME_LENGTH} characters")
    _validate_non_negative("min_stock", min_stock, errors)
    kind = coerce_enum(MaterialKind, kind, "kind", errors)
    unit = coerce_enum(UnitOfMeasure, unit, "unit", errors)
    if name and _find_by_name(session, name, tenant_id) is not None:
        errors.append(f"material '{name}' already exists")
    raise_if_invalid("create_material", errors, material_name=name)

    material = Material(
        tenant_id=tenant_id,
        name=name,
        kind=kind,
        unit=unit,
        quantity_on_hand=0.0,
        avg_unit_cost=0.0,
        min_stock=min_stock,
    )
    if created_at is not None:
        material.created_at = to_naive_utc(created_at)
    session.add(material)
    session.flush()

    log_operation(logger, operation="create_material", outcome="success", material_id=material.id)
    return material


def _update_material_impl(
    material_id: int, updates: Dict[str, Any], tenant_id: str, session: Session
) -> Material:
    material = get_material_for_update(session, material_id, tenant_id)

    unknown = sorted(set(updates) - set(UPDATABLE_FIELDS))
    errors = [f"{field} cannot be updated directly" for field in unknown]
    data = dict(updates)
    if "name" in data:
        data["name"] = (data["name"] or "").strip()
        if not data["name"]:
            errors.append("name is required")
        elif data["name"] != material.name and _find_by_name(session, data["name"], tenant_id):
            errors.append(f"material '{data['name']}' already exists")
    if "min_stock" in data:
        _validate_non_negative("min_stock", data["min_stock"], errors)
    if "kind" in data:
        data["kind"] = coerce_enum(MaterialKind, data["kind"], "kind", errors)
    if "unit" in data:
        data["unit"] = coerce_enum(UnitOfMeasure, data["unit"], "unit", errors)
    raise_if_invalid("update_material", errors, material_id=material_id)

    material.update_from_dict(data, allowed=UPDATABLE_FIELDS)
    session.flush()
    return material


def _apply_inflow(
    material: Material,
    kind: MovementKind,
    quantity: float,
    total_cost: float,
    reference_id: Optional[int],
    reference_type: Optional[ReferenceType],
    origin: Optional[str],
    occurred_at: Optional[datetime],
    session: Session,
) -> Material:
    material.quantity_on_hand, material.avg_unit_cost = costing.blend_average(
        material.quantity_on_hand, material.avg_unit_cost, quantity, total_cost
    )
    append_movement(
        session, material, kind, quantity, total_cost,
        reference_id=reference_id, reference_type=reference_type,
        origin=origin, occurred_at=occurred_at,
    )
    return material


def _record_purchase_impl(
    material_id: int,
    quantity: float,
    total_cost: float,
    reference_id: Optional[int],
    occurred_at: Optional[datetime],
    tenant_id: str,
    session: Session,
) -> Material:
    errors = []
    _validate_positive("quantity", quantity, errors)
    _validate_non_negative("total_cost", total_cost, errors)
    raise_if_invalid("record_purchase", errors, material_id=material_id)

    material = get_material_for_update(session, material_id, tenant_id)
    _apply_inflow(
        material,
        MovementKind.PURCHASE,
        quantity,
        total_cost,
        reference_id,
        ReferenceType.EXPENSE if reference_id is not None else None,
        None,
        occurred_at,
        session,
    )

    log_operation(
        logger, operation="record_purchase", outcome="success",
        material_id=material.id, quantity=quantity, total_cost=total_cost,
    )
    return material


def _register_waste_impl(
    material_id: int,
    quantity: float,
    occurred_at: Optional[datetime],
    tenant_id: str,
    session: Session,
) -> Material:
    errors = []
    _validate_positive("quantity", quantity, errors)
    raise_if_invalid("register_waste", errors, material_id=material_id)

    material = get_material_for_update(session, material_id, tenant_id)
    _require_stock("register_waste", material, quantity)

    material.quantity_on_hand, material.avg_unit_cost = costing.redistribute_waste(
        material.quantity_on_hand, material.avg_unit_cost, quantity
    )
    append_movement(session, material, MovementKind.WASTE, quantity, 0.0, occurred_at=occurred_at)

    log_operation(
        logger, operation="register_waste", outcome="success",
        material_id=material.id, quantity=quantity,
    )
    return material


def _register_asset_intake_impl(
    name: str,
    quantity: float,
    total_cost: float,
    origin_note: Optional[str],
    order_reference: Optional[int],
    kind,
    unit,
    created_at: Optional[datetime],
    tenant_id: str,
    session: Session,
) -> Material:
    errors = []
    if not (name or "").strip():
        errors.append("name is required")
    _validate_positive("quantity", quantity, errors)
    _validate_non_negative("total_cost", total_cost, errors)
    raise_if_invalid("register_asset_intake", errors, material_name=name)

    name = name.strip()
    material = _find_by_name(session, name, tenant_id)
    if material is None:
        material = _create_material_impl(
            name,
            kind or MaterialKind.FINISHED_PRODUCT,
            unit or UnitOfMeasure.UNIT,
            0.0,
            created_at,
            tenant_id,
            session,
        )

    if order_reference is not None:
        origin, reference_type = ORIGIN_RECOVERED_ASSET, ReferenceType.ORDER
    else:
        origin, reference_type = ORIGIN_ASSET, None
    if origin_note:
        origin = f"{origin}: {origin_note}"

    _apply_inflow(
        material,
        MovementKind.ASSET_INTAKE,
        quantity,
        total_cost,
        order_reference,
        reference_type,
        origin,
        created_at,
        session,
    )

    log_operation(
        logger, operation="register_asset_intake", outcome="success",
        material_id=material.id, quantity=quantity, order_reference=order_reference,
    )
    return material


def _register_correction_impl(
    material_id: int,
    quantity: float,
    reason: str,
    occurred_at: Optional[datetime],
    tenant_id: str,
    session: Session,
) -> float:
    errors = []
    _validate_positive("quantity", quantity, errors)
    raise_if_invalid("register_correction", errors, material_id=material_id)

    material = get_material_for_update(session, material_id, tenant_id)
    _require_stock("register_correction", material, quantity)

    material.quantity_on_hand, cost_removed = costing.remove_at_average(
        material.quantity_on_hand, material.avg_unit_cost, quantity
    )
    append_movement(
        session, material, MovementKind.CORRECTION, -quantity, -cost_removed,
        origin=reason, occurred_at=occurred_at,
    )

    log_operation(
        logger, operation="register_correction", outcome="success",
        material_id=material.id, quantity=quantity, cost_removed=cost_removed,
    )
    return cost_removed


# =============================================================================
# Public API
# =============================================================================


def create_material(
    name: str,
    kind,
    unit,
    min_stock: float = 0.0,
    created_at: Optional[datetime] = None,
    tenant_id: Optional[str] = None,
    session: Optional[Session] = None,
) -> Material:
    """
    Create a material with zero stock and zero cost.

    Args:
        name: Display name, unique inside the tenant
        kind: MaterialKind (or its value)
        unit: UnitOfMeasure (or its value)
        min_stock: Low-stock alert threshold
        created_at: Optional creation timestamp (defaults to now)
        tenant_id: Tenant, defaults to the configured tenant
        session: Optional database session

    Returns:
        Created Material

    Raises:
        ValidationError: If the name is empty or already used in the tenant
    """
    tenant_id = resolve_tenant(tenant_id)
    if session is not None:
        return _create_material_impl(name, kind, unit, min_stock, created_at, tenant_id, session)
    with session_scope() as sess:
        return _create_material_impl(name, kind, unit, min_stock, created_at, tenant_id, sess)


def get_material(
    material_id: int, tenant_id: Optional[str] = None, session: Optional[Session] = None
) -> Material:
    """
    Get a material by ID.

    Raises:
        MaterialNotFound: If the material doesn't exist in the tenant
    """
    tenant_id = resolve_tenant(tenant_id)
    if session is not None:
        return get_material_for_update(session, material_id, tenant_id)
    with session_scope() as sess:
        return get_material_for_update(sess, material_id, tenant_id)


def list_materials(
    tenant_id: Optional[str] = None, session: Optional[Session] = None
) -> List[Material]:
    """List the tenant's materials ordered by name."""
    tenant_id = resolve_tenant(tenant_id)

    def _do_query(sess: Session) -> List[Material]:
        return (
            sess.query(Material)
            .filter(Material.tenant_id == tenant_id)
            .order_by(Material.name)
            .all()
        )

    if session is not None:
        return _do_query(session)
    with session_scope() as sess:
        return _do_query(sess)


def update_material(
    material_id: int,
    updates: Dict[str, Any],
    tenant_id: Optional[str] = None,
    session: Optional[Session] = None,
) -> Material:
    """
    Update descriptive fields of a material.

    Only name, kind, unit and min_stock may change here. Quantity and cost
    move exclusively through ledger operations.

    Raises:
        MaterialNotFound: If the material doesn't exist
        ValidationError: If updates touch other fields or are invalid
    """
    tenant_id = resolve_tenant(tenant_id)
    if session is not None:
        return _update_material_impl(material_id, updates, tenant_id, session)
    with session_scope() as sess:
        return _update_material_impl(material_id, updates, tenant_id, sess)


def record_purchase(
    material_id: int,
    quantity: float,
    total_cost: float,
    reference_id: Optional[int] = None,
    occurred_at: Optional[datetime] = None,
    tenant_id: Optional[str] = None,
    session: Optional[Session] = None,
) -> Material:
    """
    Blend a purchase into the material's weighted average cost.

    new_avg = (qty * avg + total_cost) / (qty + quantity)

    Does not create the expense; see material_purchase_service for the
    combined workflow.

    Args:
        material_id: Material receiving the stock
        quantity: Units bought (> 0)
        total_cost: Total paid (>= 0)
        reference_id: Optional id of the expense funding the purchase
        occurred_at: Optional movement timestamp (defaults to now)
        tenant_id: Tenant, defaults to the configured tenant
        session: Optional database session

    Returns:
        Updated Material

    Raises:
        MaterialNotFound: If the material doesn't exist
        ValidationError: If quantity or total_cost are out of range
    """
    tenant_id = resolve_tenant(tenant_id)
    if session is not None:
        return _record_purchase_impl(
            material_id, quantity, total_cost, reference_id, occurred_at, tenant_id, session
        )
    with session_scope() as sess:
        return _record_purchase_impl(
            material_id, quantity, total_cost, reference_id, occurred_at, tenant_id, sess
        )


def register_waste(
    material_id: int,
    quantity: float,
    occurred_at: Optional[datetime] = None,
    tenant_id: Optional[str] = None,
    session: Optional[Session] = None,
) -> Material:
    """
    Register wasted stock.

    The total value of the material is unchanged: the value of the wasted
    units is spread over the remaining ones. The WASTE movement has cost 0.

    Raises:
        MaterialNotFound: If the material doesn't exist
        InsufficientStock: If quantity exceeds the stock on hand
    """
    tenant_id = resolve_tenant(tenant_id)
    if session is not None:
        return _register_waste_impl(material_id, quantity, occurred_at, tenant_id, session)
    with session_scope() as sess:
        return _register_waste_impl(material_id, quantity, occurred_at, tenant_id, sess)


def register_asset_intake(
    name: str,
    quantity: float,
    total_cost: float,
    origin_note: Optional[str] = None,
    order_reference: Optional[int] = None,
    kind=None,
    unit=None,
    created_at: Optional[datetime] = None,
    tenant_id: Optional[str] = None,
    session: Optional[Session] = None,
) -> Material:
    """
    Receive stock from a non-purchase origin (e.g. a recovered product).

    Finds the material by name inside the tenant or creates it (kind
    Finished Product and unit Unit unless given), then blends the intake
    like a purchase. The movement origin is 'recovered_asset' when an order
    reference is given, else 'asset'.

    Returns:
        The found or created Material
    """
    tenant_id = resolve_tenant(tenant_id)
    args = (name, quantity, total_cost, origin_note, order_reference, kind, unit, created_at)
    if session is not None:
        return _register_asset_intake_impl(*args, tenant_id, session)
    with session_scope() as sess:
        return _register_asset_intake_impl(*args, tenant_id, sess)


def register_correction(
    material_id: int,
    quantity: float,
    reason: str,
    occurred_at: Optional[datetime] = None,
    tenant_id: Optional[str] = None,
    session: Optional[Session] = None,
) -> float:
    """
    Remove stock that was never really there, together with its value.

    Returns:
        cost_removed = quantity * avg_unit_cost, so the caller can reverse a
        linked expense

    Raises:
        MaterialNotFound: If the material doesn't exist
        InsufficientStock: If quantity exceeds the stock on hand
    """
    tenant_id = resolve_tenant(tenant_id)
    if session is not None:
        return _register_correction_impl(
            material_id, quantity, reason, occurred_at, tenant_id, session
        )
    with session_scope() as sess:
        return _register_correction_impl(material_id, quantity, reason, occurred_at, tenant_id, sess)


def list_movements(
    material_id: Optional[int] = None,
    kind: Optional[MovementKind] = None,
    tenant_id: Optional[str] = None,
    session: Optional[Session] = None,
) -> List[InventoryMovement]:
    """
    List the movement audit trail, newest first.

    Args:
        material_id: Optional filter by material
        kind: Optional filter by MovementKind
    """
    tenant_id = resolve_tenant(tenant_id)

    def _do_query(sess: Session) -> List[InventoryMovement]:
        query = sess.query(InventoryMovement).filter(InventoryMovement.tenant_id == tenant_id)
        if material_id is not None:
            query = query.filter(InventoryMovement.material_id == material_id)
        if kind is not None:
            query = query.filter(InventoryMovement.kind == MovementKind(kind))
        return query.order_by(InventoryMovement.date.desc(), InventoryMovement.id.desc()).all()

    if session is not None:
        return _do_query(session)
    with session_scope() as sess:
        return _do_query(sess)
