"""Product Service - product catalog and recipes.

A product is sold through work orders; its recipe is the fixed list of
materials one unit consumes. The recipe is always written together with the
product, so no product exists without its recipe.

All functions accept an optional session parameter:
- If session provided: caller owns transaction, don't commit
- If session is None: create own transaction via session_scope()

Key Features:
- Live cost estimate from the current material averages (never frozen)
- Availability check that reports every short material in one pass
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session, selectinload

from ..models import Material, Product, RecipeItem
from ..utils.constants import MAX_NAME_LENGTH, UNKNOWN_MATERIAL_NAME
from ..utils.datetime_utils import to_naive_utc
from . import costing
from .costing import Shortfall
from .database import session_scope
from .exceptions import ProductNotFound
from .inventory_service import raise_if_invalid, resolve_tenant
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)

UPDATABLE_FIELDS = ("name", "description", "suggested_price", "stock")


def get_product_for_update(session: Session, product_id: int, tenant_id: str) -> Product:
    """Load a product (with its recipe) inside the tenant or raise ProductNotFound."""
    product = (
        session.query(Product)
        .options(selectinload(Product.recipe))
        .filter(Product.id == product_id, Product.tenant_id == tenant_id)
        .first()
    )
    if product is None:
        raise ProductNotFound(product_id)
    return product


def recipe_lines(product: Product) -> List[tuple]:
    """(material_id, quantity) pairs of a product's recipe."""
    return [(item.material_id, item.quantity) for item in product.recipe]


def _materials_by_id(session: Session, material_ids: Iterable[int], tenant_id: str) -> Dict[int, Material]:
    ids = set(material_ids)
    if not ids:
        return {}
    materials = (
        session.query(Material)
        .filter(Material.tenant_id == tenant_id, Material.id.in_(ids))
        .all()
    )
    return {m.id: m for m in materials}


def find_shortfalls(session: Session, product: Product, tenant_id: str) -> List[Shortfall]:
    """Every recipe line the tenant's current stock cannot cover."""
    lines = recipe_lines(product)
    materials = _materials_by_id(session, (mid for mid, _ in lines), tenant_id)
    stock = {mid: (m.name, m.quantity_on_hand) for mid, m in materials.items()}
    return costing.find_shortfalls(lines, stock, UNKNOWN_MATERIAL_NAME)


def _validate_recipe(
    session: Session, recipe: List[Dict[str, Any]], tenant_id: str, errors: List[str]
) -> None:
    if not recipe:
        errors.append("recipe must contain at least one material")
        return
    known = _materials_by_id(session, (line.get("material_id") for line in recipe), tenant_id)
    for index, line in enumerate(recipe, start=1):
        material_id = line.get("material_id")
        quantity = line.get("quantity")
        if material_id not in known:
            errors.append(f"recipe line {index}: material {material_id} not found")
        if quantity is None or quantity <= 0:
            errors.append(f"recipe line {index}: quantity must be positive")


def _create_product_impl(
    name: str,
    suggested_price: float,
    recipe: List[Dict[str, Any]],
    description: str,
    stock: float,
    created_at: Optional[datetime],
    tenant_id: str,
    session: Session,
) -> Product:
    name = (name or "").strip()
    errors = []
    if not name:
        errors.append("name is required")
    elif len(name) > MAX_NAME_LENGTH:
        errors.append(f"name cannot exceed {MAX_NAME_LENGTH} characters")
    if suggested_price is None or suggested_price < 0:
        errors.append("suggested_price cannot be negative")
    if stock is None or stock < 0:
        errors.append("stock cannot be negative")
    _validate_recipe(session, recipe, tenant_id, errors)
    raise_if_invalid("create_product", errors, product_name=name)

    product = Product(
        tenant_id=tenant_id,
        name=name,
        description=description or "",
        suggested_price=suggested_price,
        stock=stock,
    )
    if created_at is not None:
        product.created_at = to_naive_utc(created_at)
    for material_id, quantity in costing.merge_lines(
        (line["material_id"], line["quantity"]) for line in recipe
    ):
        product.recipe.append(
            RecipeItem(tenant_id=tenant_id, material_id=material_id, quantity=quantity)
        )
    session.add(product)
    session.flush()

    log_operation(
        logger, operation="create_product", outcome="success",
        product_id=product.id, recipe_lines=len(product.recipe),
    )
    return product


def _update_product_impl(
    product_id: int, updates: Dict[str, Any], tenant_id: str, session: Session
) -> Product:
    product = get_product_for_update(session, product_id, tenant_id)

    errors = [f"{field} cannot be updated" for field in sorted(set(updates) - set(UPDATABLE_FIELDS))]
    if "name" in updates and not (updates["name"] or "").strip():
        errors.append("name is required")
    for field in ("suggested_price", "stock"):
        if field in updates and (updates[field] is None or updates[field] < 0):
            errors.append(f"{field} cannot be negative")
    raise_if_invalid("update_product", errors, product_id=product_id)

    product.update_from_dict(updates, allowed=UPDATABLE_FIELDS)
    session.flush()
    return product


def _delete_product_impl(product_id: int, tenant_id: str, session: Session) -> None:
    product = get_product_for_update(session, product_id, tenant_id)
    session.delete(product)
    session.flush()
    log_operation(logger, operation="delete_product", outcome="success", product_id=product_id)


def _estimate_cost_impl(product_id: int, tenant_id: str, session: Session) -> float:
    product = get_product_for_update(session, product_id, tenant_id)
    lines = recipe_lines(product)
    materials = _materials_by_id(session, (mid for mid, _ in lines), tenant_id)
    return costing.recipe_cost(lines, costing.index_costs(materials.values()))


# =============================================================================
# Public API
# =============================================================================


def create_product(
    name: str,
    suggested_price: float,
    recipe: List[Dict[str, Any]],
    description: str = "",
    stock: float = 0.0,
    created_at: Optional[datetime] = None,
    tenant_id: Optional[str] = None,
    session: Optional[Session] = None,
) -> Product:
    """
    Create a product together with its recipe.

    Args:
        name: Product name
        suggested_price: List price (>= 0)
        recipe: List of {"material_id": int, "quantity": float}; each material
            must exist in the tenant and each quantity must be > 0. Repeated
            materials are merged into one line with the summed quantity
        description: Optional free text
        stock: Finished units on hand
        created_at: Optional creation timestamp
        tenant_id: Tenant, defaults to the configured tenant
        session: Optional database session

    Returns:
        Created Product with its recipe

    Raises:
        ValidationError: If any field or recipe line is invalid

    Example:
        >>> product = create_product(
        ...     "Full Seat Cover Set",
        ...     450.0,
        ...     [{"material_id": 1, "quantity": 3.0}, {"material_id": 2, "quantity": 1.0}],
        ... )
    """
    tenant_id = resolve_tenant(tenant_id)
    args = (name, suggested_price, recipe, description, stock, created_at, tenant_id)
    if session is not None:
        return _create_product_impl(*args, session)
    with session_scope() as sess:
        return _create_product_impl(*args, sess)


def get_product(
    product_id: int, tenant_id: Optional[str] = None, session: Optional[Session] = None
) -> Product:
    """
    Get a product with its recipe.

    Raises:
        ProductNotFound: If the product doesn't exist in the tenant
    """
    tenant_id = resolve_tenant(tenant_id)
    if session is not None:
        return get_product_for_update(session, product_id, tenant_id)
    with session_scope() as sess:
        return get_product_for_update(sess, product_id, tenant_id)


def list_products(
    tenant_id: Optional[str] = None, session: Optional[Session] = None
) -> List[Product]:
    """List the tenant's products with recipes, ordered by name."""
    tenant_id = resolve_tenant(tenant_id)

    def _do_query(sess: Session) -> List[Product]:
        return (
            sess.query(Product)
            .options(selectinload(Product.recipe))
            .filter(Product.tenant_id == tenant_id)
            .order_by(Product.name)
            .all()
        )

    if session is not None:
        return _do_query(session)
    with session_scope() as sess:
        return _do_query(sess)


def update_product(
    product_id: int,
    updates: Dict[str, Any],
    tenant_id: Optional[str] = None,
    session: Optional[Session] = None,
) -> Product:
    """
    Update name, description, suggested_price or stock.

    Raises:
        ProductNotFound: If the product doesn't exist
        ValidationError: If updates touch other fields or are invalid
    """
    tenant_id = resolve_tenant(tenant_id)
    if session is not None:
        return _update_product_impl(product_id, updates, tenant_id, session)
    with session_scope() as sess:
        return _update_product_impl(product_id, updates, tenant_id, sess)


def delete_product(
    product_id: int, tenant_id: Optional[str] = None, session: Optional[Session] = None
) -> None:
    """
    Delete a product and its recipe.

    Orders keep their history; their product_id is cleared by the database.

    Raises:
        ProductNotFound: If the product doesn't exist
    """
    tenant_id = resolve_tenant(tenant_id)
    if session is not None:
        return _delete_product_impl(product_id, tenant_id, session)
    with session_scope() as sess:
        return _delete_product_impl(product_id, tenant_id, sess)


def estimate_cost(
    product_id: int, tenant_id: Optional[str] = None, session: Optional[Session] = None
) -> float:
    """
    Live recipe cost: sum of quantity x current material avg_unit_cost.

    This is what margin alerts use. It is NOT what an order freezes; orders
    snapshot the cost at creation time.
    """
    tenant_id = resolve_tenant(tenant_id)
    if session is not None:
        return _estimate_cost_impl(product_id, tenant_id, session)
    with session_scope() as sess:
        return _estimate_cost_impl(product_id, tenant_id, sess)


def validate_availability(
    product_id: int, tenant_id: Optional[str] = None, session: Optional[Session] = None
) -> List[Shortfall]:
    """
    Check whether one unit of the product can be produced from current stock.

    Returns:
        Every Shortfall (all short materials, not only the first). Materials
        missing from the tenant are reported as 'Unknown material' with
        available 0. Empty list when production is possible.

    Raises:
        ProductNotFound: If the product doesn't exist
    """
    tenant_id = resolve_tenant(tenant_id)

    def _do_check(sess: Session) -> List[Shortfall]:
        product = get_product_for_update(sess, product_id, tenant_id)
        return find_shortfalls(sess, product, tenant_id)

    if session is not None:
        return _do_check(session)
    with session_scope() as sess:
        return _do_check(sess)
