"""
Weighted-average cost arithmetic for the material ledger.

Pure functions with no database access. The inventory, product and order
services apply them to ORM records; the alert engine applies them to
snapshot records.

Costing Rules:
- Inflows (purchases, asset intakes) blend into the average cost
- Waste removes quantity but keeps total value, raising the average
- Corrections and consumption remove quantity at the current average
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Tuple


# Float dust below this magnitude is treated as zero
QUANTITY_EPSILON = 1e-9


@dataclass(frozen=True)
class Shortfall:
    """A recipe line the stock on hand cannot cover."""

    material_id: int
    material_name: str
    required: float
    available: float

    @property
    def missing(self) -> float:
        return self.required - self.available


def clamp_non_negative(value: float) -> float:
    """Snap float dust around zero to exactly 0.0."""
    if abs(value) < QUANTITY_EPSILON:
        return 0.0
    return value


def blend_average(
    quantity: float, avg_cost: float, added_quantity: float, added_cost: float
) -> Tuple[float, float]:
    """
    Apply an inflow to a weighted-average cost layer.

    Args:
        quantity: Current quantity on hand
        avg_cost: Current average unit cost
        added_quantity: Quantity received
        added_cost: Total cost of the quantity received

    Returns:
        Tuple of (new_quantity, new_avg_cost). The average is 0 when the new
        quantity is 0.

    Example:
        >>> blend_average(10, 5.0, 10, 40.0)
        (20, 4.5)
    """
    new_quantity = quantity + added_quantity
    if new_quantity <= 0:
        return clamp_non_negative(new_quantity), 0.0
    new_avg = (quantity * avg_cost + added_cost) / new_quantity
    return new_quantity, new_avg


def redistribute_waste(quantity: float, avg_cost: float, wasted: float) -> Tuple[float, float]:
    """
    Remove wasted stock while holding the total value constant.

    The value of the lost units moves onto the remaining ones:
    ``new_quantity * new_avg == quantity * avg_cost``.

    Returns:
        Tuple of (new_quantity, new_avg_cost); (0.0, 0.0) when nothing remains.

    Example:
        >>> redistribute_waste(20, 4.5, 5)
        (15, 6.0)
    """
    new_quantity = clamp_non_negative(quantity - wasted)
    if new_quantity <= 0:
        return 0.0, 0.0
    return new_quantity, (quantity * avg_cost) / new_quantity


def remove_at_average(quantity: float, avg_cost: float, removed: float) -> Tuple[float, float]:
    """
    Remove stock together with its value at the current average.

    Returns:
        Tuple of (new_quantity, cost_removed). The average cost is unchanged.
    """
    return clamp_non_negative(quantity - removed), removed * avg_cost


def recipe_cost(lines: Iterable[Tuple[int, float]], avg_costs: Mapping[int, float]) -> float:
    """
    Live cost of a recipe: sum of quantity times current average cost.

    Materials missing from ``avg_costs`` contribute nothing.
    """
    return sum(quantity * avg_costs.get(material_id, 0.0) for material_id, quantity in lines)


def merge_lines(lines: Iterable[Tuple[int, float]]) -> List[Tuple[int, float]]:
    """Sum the quantities of repeated materials, keeping first-seen order."""
    merged: Dict[int, float] = {}
    for material_id, quantity in lines:
        merged[material_id] = merged.get(material_id, 0.0) + quantity
    return list(merged.items())


def find_shortfalls(
    lines: Iterable[Tuple[int, float]],
    stock: Mapping[int, Tuple[str, float]],
    unknown_name: str,
) -> List[Shortfall]:
    """
    Collect every material the stock cannot cover.

    Repeated materials are checked against their summed requirement.

    Args:
        lines: (material_id, required_quantity) pairs
        stock: material_id -> (material_name, quantity_on_hand)
        unknown_name: Name reported for materials missing from ``stock``

    Returns:
        All shortfalls, in recipe order. Empty when the recipe can be produced.
    """
    shortfalls = []
    for material_id, required in merge_lines(lines):
        entry: Optional[Tuple[str, float]] = stock.get(material_id)
        if entry is None:
            shortfalls.append(Shortfall(material_id, unknown_name, required, 0.0))
            continue
        name, available = entry
        if available < required:
            shortfalls.append(Shortfall(material_id, name, required, available))
    return shortfalls


def margin_ratio(price: float, cost: float) -> Optional[float]:
    """(price - cost) / price, or None for a non-positive price."""
    if price <= 0:
        return None
    return (price - cost) / price


def index_costs(materials: Iterable) -> Dict[int, float]:
    """Map material id to average unit cost for objects with id/avg_unit_cost."""
    return {m.id: m.avg_unit_cost or 0.0 for m in materials}
