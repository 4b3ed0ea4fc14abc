"""Alert Service - rule-based alerts and month-end projections.

``generate_alerts`` is a pure function: it rescans the whole LedgerSnapshot on
every call and keeps no state between calls. Every rule is evaluated
independently.

Monthly figures only count records dated at or before ``now``:
- operating expenses: expenses whose category treatment is OPERATING
- order sales: sale_price of orders created in the month
- cost of goods: frozen material costs of orders created in the month
- order profit: order sales - (operating expenses + cost of goods)
- average production cost: cost of goods / number of orders in the month

Alerts are a closed set of frozen dataclasses, one per rule, each carrying a
typed payload. Projections are structured payloads, never serialized text.

Example Usage:
    >>> from upholstery_tracker.services.alert_service import get_alerts
    >>> for alert in get_alerts():
    ...     print(alert.priority.value, alert.title)
"""

from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Any, ClassVar, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..models.enums import AlertCategory, AlertPriority, MovementKind
from ..utils import constants
from ..utils.datetime_utils import (
    age_in_days,
    days_in_month,
    previous_month,
    same_month,
    to_naive_utc,
    utc_now_naive,
)
from . import costing
from .dto import LedgerSnapshot, MaterialRecord, OrderRecord, ProductRecord
from .ledger_service import load_snapshot
from .logging_utils import get_service_logger

logger = get_service_logger(__name__)

Period = Tuple[int, int]


# =============================================================================
# Projection payloads
# =============================================================================


@dataclass(frozen=True)
class CashFlowProjection:
    """
    Month-end cash projection.

    projected_cash_end = cash_now + daily_sales_rate * days_remaining * margin
    """

    cash_now: float
    estimated_monthly_expenses: float
    current_month_expenses: float
    remaining_expenses: float
    month_sales: float
    month_profit: float
    margin: float
    daily_sales_rate: float
    days_elapsed: int
    days_remaining: int
    projected_cash_end: float


@dataclass(frozen=True)
class ProfitProjection:
    """
    Month-end profit projection from payment-based income.

    profit_so_far = month_income - month_cost_of_goods - month_operating_expenses
    projected_profit = profit_so_far / days_elapsed * days_in_month
    """

    month_income: float
    month_cost_of_goods: float
    month_operating_expenses: float
    profit_so_far: float
    daily_average: float
    projected_profit: float
    previous_month_profit: float
    days_elapsed: int
    days_in_month: int


# =============================================================================
# Alert variants
# =============================================================================


@dataclass(frozen=True)
class Alert:
    """Fields shared by every alert. Subclasses add their typed payload."""

    category: ClassVar[AlertCategory]

    id: str
    title: str
    message: str
    priority: AlertPriority
    generated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result["type"] = type(self).__name__
        result["category"] = self.category.value
        result["priority"] = self.priority.value
        result["generated_at"] = self.generated_at.isoformat()
        return result


@dataclass(frozen=True)
class ProductOutOfStockAlert(Alert):
    category: ClassVar[AlertCategory] = AlertCategory.INVENTORY

    product_id: int
    product_name: str
    stock: float


@dataclass(frozen=True)
class LowProductMarginAlert(Alert):
    category: ClassVar[AlertCategory] = AlertCategory.FINANCIAL

    product_id: int
    product_name: str
    suggested_price: float
    recipe_cost: float
    margin: float


@dataclass(frozen=True)
class MaterialBelowMinimumAlert(Alert):
    category: ClassVar[AlertCategory] = AlertCategory.INVENTORY

    material_id: int
    material_name: str
    quantity_on_hand: float
    min_stock: float


@dataclass(frozen=True)
class OperatingExpenseSpikeAlert(Alert):
    category: ClassVar[AlertCategory] = AlertCategory.OPERATIONAL

    current_month_expenses: float
    previous_month_expenses: float


@dataclass(frozen=True)
class ProfitDeclineAlert(Alert):
    category: ClassVar[AlertCategory] = AlertCategory.FINANCIAL

    current_month_profit: float
    previous_month_profit: float


@dataclass(frozen=True)
class ProductionCostIncreaseAlert(Alert):
    category: ClassVar[AlertCategory] = AlertCategory.OPERATIONAL

    current_average_cost: float
    previous_average_cost: float


@dataclass(frozen=True)
class CashFlowRiskAlert(Alert):
    category: ClassVar[AlertCategory] = AlertCategory.FINANCIAL

    projection: CashFlowProjection


@dataclass(frozen=True)
class CashFlowStableAlert(Alert):
    category: ClassVar[AlertCategory] = AlertCategory.FINANCIAL

    projection: CashFlowProjection


@dataclass(frozen=True)
class WasteMarginErosionAlert(Alert):
    category: ClassVar[AlertCategory] = AlertCategory.OPERATIONAL

    current_month_waste: float
    previous_month_waste: float
    current_average_cost: float
    previous_average_cost: float


@dataclass(frozen=True)
class OverstockAlert(Alert):
    category: ClassVar[AlertCategory] = AlertCategory.INVENTORY

    material_id: int
    material_name: str
    quantity_on_hand: float
    average_monthly_usage: float
    months_of_coverage: float


@dataclass(frozen=True)
class DeadStockAlert(Alert):
    category: ClassVar[AlertCategory] = AlertCategory.INVENTORY

    material_id: int
    material_name: str
    quantity_on_hand: float


@dataclass(frozen=True)
class LowProductRotationAlert(Alert):
    category: ClassVar[AlertCategory] = AlertCategory.INVENTORY

    product_id: int
    product_name: str
    stock: float


@dataclass(frozen=True)
class ProfitProjectionAlert(Alert):
    category: ClassVar[AlertCategory] = AlertCategory.FINANCIAL

    projection: ProfitProjection


# =============================================================================
# Monthly figures
# =============================================================================


def _in_month(value: Optional[datetime], period: Period, now: datetime) -> bool:
    return value is not None and value <= now and same_month(value, *period)


def _to_date(value: Optional[datetime], now: datetime) -> bool:
    # Undated records count as already happened
    return value is None or value <= now


def _period_key(period: Period) -> str:
    return f"{period[0]:04d}-{period[1]:02d}"


def orders_in_month(snapshot: LedgerSnapshot, period: Period, now: datetime) -> List[OrderRecord]:
    return [o for o in snapshot.orders if _in_month(o.created_at, period, now)]


def operating_expenses_in_month(snapshot: LedgerSnapshot, period: Period, now: datetime) -> float:
    return sum(
        e.amount for e in snapshot.expenses if e.is_operating and _in_month(e.date, period, now)
    )


def order_sales_in_month(snapshot: LedgerSnapshot, period: Period, now: datetime) -> float:
    return sum(o.sale_price for o in orders_in_month(snapshot, period, now))


def cost_of_goods_in_month(snapshot: LedgerSnapshot, period: Period, now: datetime) -> float:
    return sum(o.cost_of_goods for o in orders_in_month(snapshot, period, now))


def order_profit_in_month(snapshot: LedgerSnapshot, period: Period, now: datetime) -> float:
    """Order-based profit: sales - (operating expenses + cost of goods)."""
    return order_sales_in_month(snapshot, period, now) - (
        operating_expenses_in_month(snapshot, period, now)
        + cost_of_goods_in_month(snapshot, period, now)
    )


def average_production_cost(snapshot: LedgerSnapshot, period: Period, now: datetime) -> float:
    """Frozen cost of goods per order created in the month, 0 without orders."""
    orders = orders_in_month(snapshot, period, now)
    if not orders:
        return 0.0
    return sum(o.cost_of_goods for o in orders) / len(orders)


def payments_in_month(snapshot: LedgerSnapshot, period: Period, now: datetime) -> float:
    return sum(p.amount for p in snapshot.payments if _in_month(p.date, period, now))


def waste_in_month(snapshot: LedgerSnapshot, period: Period, now: datetime) -> float:
    return sum(
        m.quantity
        for m in snapshot.movements
        if m.kind is MovementKind.WASTE and _in_month(m.date, period, now)
    )


def material_usage_in_month(
    snapshot: LedgerSnapshot, material_id: int, period: Period, now: datetime
) -> float:
    """Quantity of a material consumed by orders created in the month."""
    return sum(
        line.quantity
        for order in orders_in_month(snapshot, period, now)
        for line in order.materials_used
        if line.material_id == material_id
    )


def _periods(now: datetime) -> Tuple[Period, Period]:
    current = (now.year, now.month)
    return current, previous_month(*current)


# =============================================================================
# Projections
# =============================================================================


def project_cash_flow(snapshot: LedgerSnapshot, now: datetime) -> CashFlowProjection:
    """
    Project the cash left at month end against the month's remaining expenses.

    cash_now is what orders collected to date (sale_price - balance) minus
    every expense paid to date, material purchases included.
    """
    now = to_naive_utc(now)
    current, previous = _periods(now)

    collected = sum(o.collected for o in snapshot.orders if _to_date(o.created_at, now))
    paid = sum(e.amount for e in snapshot.expenses if _to_date(e.date, now))
    cash_now = collected - paid

    current_expenses = operating_expenses_in_month(snapshot, current, now)
    previous_expenses = operating_expenses_in_month(snapshot, previous, now)
    if previous_expenses > 0:
        estimate = previous_expenses
    elif current_expenses > 0:
        estimate = current_expenses * constants.EXPENSE_ESTIMATE_GROWTH_FACTOR
    else:
        estimate = constants.DEFAULT_MONTHLY_EXPENSE_ESTIMATE
    remaining_expenses = max(0.0, estimate - current_expenses)

    elapsed = max(1, now.day)
    remaining_days = max(0, days_in_month(*current) - elapsed)

    month_sales = order_sales_in_month(snapshot, current, now)
    month_profit = order_profit_in_month(snapshot, current, now)
    daily_sales_rate = month_sales / elapsed
    if month_sales > 0:
        margin = month_profit / month_sales
    else:
        margin = constants.DEFAULT_PROJECTION_MARGIN

    return CashFlowProjection(
        cash_now=cash_now,
        estimated_monthly_expenses=estimate,
        current_month_expenses=current_expenses,
        remaining_expenses=remaining_expenses,
        month_sales=month_sales,
        month_profit=month_profit,
        margin=margin,
        daily_sales_rate=daily_sales_rate,
        days_elapsed=elapsed,
        days_remaining=remaining_days,
        projected_cash_end=cash_now + daily_sales_rate * remaining_days * margin,
    )


def _payment_profit(snapshot: LedgerSnapshot, period: Period, now: datetime) -> float:
    return (
        payments_in_month(snapshot, period, now)
        - cost_of_goods_in_month(snapshot, period, now)
        - operating_expenses_in_month(snapshot, period, now)
    )


def project_month_end_profit(snapshot: LedgerSnapshot, now: datetime) -> ProfitProjection:
    """
    Extrapolate the month's payment-based profit to the end of the month.

    Also reports the previous month's realized profit, computed the same way.
    """
    now = to_naive_utc(now)
    current, previous = _periods(now)

    income = payments_in_month(snapshot, current, now)
    cogs = cost_of_goods_in_month(snapshot, current, now)
    opex = operating_expenses_in_month(snapshot, current, now)
    profit_so_far = income - cogs - opex

    elapsed = max(1, now.day)
    total_days = days_in_month(*current)
    daily_average = profit_so_far / elapsed

    return ProfitProjection(
        month_income=income,
        month_cost_of_goods=cogs,
        month_operating_expenses=opex,
        profit_so_far=profit_so_far,
        daily_average=daily_average,
        projected_profit=daily_average * total_days,
        previous_month_profit=_payment_profit(snapshot, previous, now),
        days_elapsed=elapsed,
        days_in_month=total_days,
    )


# =============================================================================
# Rules
# =============================================================================


def _product_alerts(snapshot: LedgerSnapshot, now: datetime) -> List[Alert]:
    alerts: List[Alert] = []
    avg_costs = costing.index_costs(snapshot.materials)

    for product in snapshot.products:
        if product.stock <= 0:
            alerts.append(
                ProductOutOfStockAlert(
                    id=f"prod-stock-{product.id}",
                    title="Product Out of Stock",
                    message=f"Product {product.name} has no stock available",
                    priority=AlertPriority.HIGH,
                    generated_at=now,
                    product_id=product.id,
                    product_name=product.name,
                    stock=product.stock,
                )
            )

        recipe_cost = costing.recipe_cost(
            ((line.material_id, line.quantity) for line in product.recipe), avg_costs
        )
        margin = costing.margin_ratio(product.suggested_price, recipe_cost)
        if margin is not None and margin < constants.LOW_MARGIN_THRESHOLD:
            alerts.append(
                LowProductMarginAlert(
                    id=f"prod-margin-{product.id}",
                    title="Low Profit Margin",
                    message=f"Product {product.name} has a margin of {margin * 100:.1f}%",
                    priority=AlertPriority.MEDIUM,
                    generated_at=now,
                    product_id=product.id,
                    product_name=product.name,
                    suggested_price=product.suggested_price,
                    recipe_cost=recipe_cost,
                    margin=margin,
                )
            )
    return alerts


def _minimum_stock_alerts(snapshot: LedgerSnapshot, now: datetime) -> List[Alert]:
    return [
        MaterialBelowMinimumAlert(
            id=f"mat-stock-{m.id}",
            title="Material Below Minimum Stock",
            message=f"Material {m.name} is at or below its minimum ({m.quantity_on_hand} / {m.min_stock})",
            priority=AlertPriority.HIGH,
            generated_at=now,
            material_id=m.id,
            material_name=m.name,
            quantity_on_hand=m.quantity_on_hand,
            min_stock=m.min_stock,
        )
        for m in snapshot.materials
        if m.quantity_on_hand <= m.min_stock
    ]


def _trend_alerts(snapshot: LedgerSnapshot, now: datetime) -> List[Alert]:
    alerts: List[Alert] = []
    current, previous = _periods(now)
    key = _period_key(current)

    current_expenses = operating_expenses_in_month(snapshot, current, now)
    previous_expenses = operating_expenses_in_month(snapshot, previous, now)
    if previous_expenses > 0 and current_expenses > previous_expenses * constants.EXPENSE_SPIKE_FACTOR:
        alerts.append(
            OperatingExpenseSpikeAlert(
                id=f"expense-spike-{key}",
                title="Operating Expenses Up",
                message="Operating expenses rose more than 20% over last month",
                priority=AlertPriority.MEDIUM,
                generated_at=now,
                current_month_expenses=current_expenses,
                previous_month_expenses=previous_expenses,
            )
        )

    current_profit = order_profit_in_month(snapshot, current, now)
    previous_profit = order_profit_in_month(snapshot, previous, now)
    if previous_profit > 0 and current_profit < previous_profit:
        alerts.append(
            ProfitDeclineAlert(
                id=f"profit-decline-{key}",
                title="Profit Decline",
                message="Profit this month is below last month's",
                priority=AlertPriority.MEDIUM,
                generated_at=now,
                current_month_profit=current_profit,
                previous_month_profit=previous_profit,
            )
        )

    current_cost = average_production_cost(snapshot, current, now)
    previous_cost = average_production_cost(snapshot, previous, now)
    if previous_cost > 0 and current_cost > previous_cost * constants.PRODUCTION_COST_INCREASE_FACTOR:
        alerts.append(
            ProductionCostIncreaseAlert(
                id=f"production-cost-{key}",
                title="Production Cost Increase",
                message="Average production cost per order rose more than 10% this month",
                priority=AlertPriority.MEDIUM,
                generated_at=now,
                current_average_cost=current_cost,
                previous_average_cost=previous_cost,
            )
        )

    current_waste = waste_in_month(snapshot, current, now)
    previous_waste = waste_in_month(snapshot, previous, now)
    if (
        previous_waste > 0
        and current_waste > previous_waste * constants.WASTE_INCREASE_FACTOR
        and previous_cost > 0
        and current_cost > previous_cost * constants.WASTE_COST_INCREASE_FACTOR
    ):
        alerts.append(
            WasteMarginErosionAlert(
                id=f"waste-margin-{key}",
                title="Waste Eroding Margins",
                message="Rising waste is pushing production cost up (more than 5%)",
                priority=AlertPriority.MEDIUM,
                generated_at=now,
                current_month_waste=current_waste,
                previous_month_waste=previous_waste,
                current_average_cost=current_cost,
                previous_average_cost=previous_cost,
            )
        )
    return alerts


def _cash_flow_alerts(snapshot: LedgerSnapshot, now: datetime) -> List[Alert]:
    projection = project_cash_flow(snapshot, now)
    key = _period_key((now.year, now.month))

    if projection.projected_cash_end < projection.remaining_expenses:
        return [
            CashFlowRiskAlert(
                id=f"cash-flow-risk-{key}",
                title="Negative Cash Flow Risk",
                message="At the current pace there won't be enough cash for the rest of the month's expenses",
                priority=AlertPriority.HIGH,
                generated_at=now,
                projection=projection,
            )
        ]
    if (
        projection.remaining_expenses > 0
        and projection.projected_cash_end
        >= projection.remaining_expenses * constants.CASH_FLOW_STABLE_FACTOR
    ):
        return [
            CashFlowStableAlert(
                id=f"cash-flow-stable-{key}",
                title="Stable Cash Flow",
                message="Projected cash covers the rest of the month's expenses",
                priority=AlertPriority.LOW,
                generated_at=now,
                projection=projection,
            )
        ]
    return []


def _material_rotation_alerts(snapshot: LedgerSnapshot, now: datetime) -> List[Alert]:
    alerts: List[Alert] = []
    current, previous = _periods(now)

    for material in snapshot.materials:
        if age_in_days(material.created_at, now, constants.UNKNOWN_AGE_DAYS) < constants.MIN_AGE_DAYS_FOR_ROTATION:
            continue

        current_usage = material_usage_in_month(snapshot, material.id, current, now)
        previous_usage = material_usage_in_month(snapshot, material.id, previous, now)
        average_usage = (current_usage + previous_usage) / 2

        if average_usage > 0:
            coverage = material.quantity_on_hand / average_usage
            if coverage >= constants.OVERSTOCK_COVERAGE_MONTHS:
                alerts.append(_overstock_alert(material, average_usage, coverage, now))
        elif material.quantity_on_hand > 0:
            alerts.append(
                DeadStockAlert(
                    id=f"dead-stock-{material.id}",
                    title="Material Without Movement",
                    message=f"Material {material.name} has stock but hasn't been used in 2 months",
                    priority=AlertPriority.MEDIUM,
                    generated_at=now,
                    material_id=material.id,
                    material_name=material.name,
                    quantity_on_hand=material.quantity_on_hand,
                )
            )
    return alerts


def _overstock_alert(
    material: MaterialRecord, average_usage: float, coverage: float, now: datetime
) -> OverstockAlert:
    return OverstockAlert(
        id=f"overstock-{material.id}",
        title="Material Overstock",
        message=f"Material {material.name} has stock for {coverage:.1f} months",
        priority=AlertPriority.MEDIUM,
        generated_at=now,
        material_id=material.id,
        material_name=material.name,
        quantity_on_hand=material.quantity_on_hand,
        average_monthly_usage=average_usage,
        months_of_coverage=coverage,
    )


def _sold_recently(snapshot: LedgerSnapshot, product: ProductRecord, since: datetime) -> bool:
    return any(
        o.product_id == product.id and o.created_at is not None and o.created_at >= since
        for o in snapshot.orders
    )


def _product_rotation_alerts(snapshot: LedgerSnapshot, now: datetime) -> List[Alert]:
    since = now - timedelta(days=constants.ROTATION_WINDOW_DAYS)
    return [
        LowProductRotationAlert(
            id=f"prod-rotation-{p.id}",
            title="Low Product Rotation",
            message=f"Product {p.name} has stock but hasn't sold in 30 days",
            priority=AlertPriority.MEDIUM,
            generated_at=now,
            product_id=p.id,
            product_name=p.name,
            stock=p.stock,
        )
        for p in snapshot.products
        if age_in_days(p.created_at, now, constants.UNKNOWN_AGE_DAYS) >= constants.MIN_AGE_DAYS_FOR_ROTATION
        and p.stock > 0
        and not _sold_recently(snapshot, p, since)
    ]


def _profit_projection_alert(snapshot: LedgerSnapshot, now: datetime) -> Alert:
    projection = project_month_end_profit(snapshot, now)
    falling = (
        projection.previous_month_profit > 0
        and projection.projected_profit < projection.previous_month_profit
    )
    return ProfitProjectionAlert(
        id=f"profit-projection-{_period_key((now.year, now.month))}",
        title="Monthly Profit Projection",
        message=(
            f"Projected month-end profit {projection.projected_profit:.2f} "
            f"(last month {projection.previous_month_profit:.2f})"
        ),
        priority=AlertPriority.HIGH if falling else AlertPriority.LOW,
        generated_at=now,
        projection=projection,
    )


# =============================================================================
# Public API
# =============================================================================


def generate_alerts(snapshot: LedgerSnapshot, now: datetime) -> List[Alert]:
    """
    Evaluate every alert rule against a snapshot.

    Args:
        snapshot: Ledgers of one tenant
        now: Reference time; month figures only count records up to it

    Returns:
        All alerts that fired. The profit projection is always included.
    """
    now = to_naive_utc(now)
    alerts: List[Alert] = []
    alerts.extend(_product_alerts(snapshot, now))
    alerts.extend(_minimum_stock_alerts(snapshot, now))
    alerts.extend(_trend_alerts(snapshot, now))
    alerts.extend(_cash_flow_alerts(snapshot, now))
    alerts.extend(_material_rotation_alerts(snapshot, now))
    alerts.extend(_product_rotation_alerts(snapshot, now))
    alerts.append(_profit_projection_alert(snapshot, now))

    logger.debug(f"Generated {len(alerts)} alerts for tenant '{snapshot.tenant_id}'")
    return alerts


def get_alerts(
    tenant_id: Optional[str] = None,
    now: Optional[datetime] = None,
    session: Optional[Session] = None,
) -> List[Alert]:
    """Load the tenant's ledgers and evaluate every alert rule."""
    snapshot = load_snapshot(tenant_id=tenant_id, session=session)
    return generate_alerts(snapshot, now or utc_now_naive())
