"""Data Transfer Objects for the ledger engines.

This module provides immutable, session-free records of the ledgers. The
financial summary and alert engines are pure functions over a
``LedgerSnapshot``; they never touch the database or any global state.

Timestamps are normalized to naive UTC on construction so that records built
from ORM objects and records built by hand compare consistently.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple

from ..models.enums import (
    ExpenseCategory,
    ExpenseTreatment,
    MaterialKind,
    MovementKind,
    OrderState,
    ReferenceType,
    UnitOfMeasure,
)
from ..utils.datetime_utils import to_naive_utc


def _normalize(record, *names: str) -> None:
    # Frozen dataclasses need object.__setattr__
    for name in names:
        object.__setattr__(record, name, to_naive_utc(getattr(record, name)))


@dataclass(frozen=True)
class MaterialRecord:
    """Read-only material."""

    id: int
    name: str
    quantity_on_hand: float
    avg_unit_cost: float
    min_stock: float = 0.0
    kind: MaterialKind = MaterialKind.OTHER
    unit: UnitOfMeasure = UnitOfMeasure.UNIT
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        _normalize(self, "created_at")

    @property
    def total_value(self) -> float:
        return self.quantity_on_hand * self.avg_unit_cost

    @classmethod
    def from_model(cls, material) -> "MaterialRecord":
        return cls(
            id=material.id,
            name=material.name,
            quantity_on_hand=material.quantity_on_hand or 0.0,
            avg_unit_cost=material.avg_unit_cost or 0.0,
            min_stock=material.min_stock or 0.0,
            kind=material.kind,
            unit=material.unit,
            created_at=material.created_at,
        )


@dataclass(frozen=True)
class RecipeLineRecord:
    material_id: int
    quantity: float


@dataclass(frozen=True)
class ProductRecord:
    """Read-only product with its recipe."""

    id: int
    name: str
    suggested_price: float
    stock: float = 0.0
    recipe: Tuple[RecipeLineRecord, ...] = ()
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        _normalize(self, "created_at")

    @classmethod
    def from_model(cls, product) -> "ProductRecord":
        return cls(
            id=product.id,
            name=product.name,
            suggested_price=product.suggested_price or 0.0,
            stock=product.stock or 0.0,
            recipe=tuple(
                RecipeLineRecord(item.material_id, item.quantity) for item in product.recipe
            ),
            created_at=product.created_at,
        )


@dataclass(frozen=True)
class OrderLineRecord:
    material_id: int
    quantity: float
    computed_cost: float


@dataclass(frozen=True)
class OrderRecord:
    """Read-only order with its frozen material costs."""

    id: int
    sale_price: float
    balance: float = 0.0
    product_id: Optional[int] = None
    job_type: Optional[str] = None
    down_payment: float = 0.0
    state: OrderState = OrderState.IN_PROGRESS
    materials_used: Tuple[OrderLineRecord, ...] = ()
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        _normalize(self, "created_at")

    @property
    def cost_of_goods(self) -> float:
        """Sum of the frozen line costs."""
        return sum(line.computed_cost for line in self.materials_used)

    @property
    def collected(self) -> float:
        return self.sale_price - self.balance

    @classmethod
    def from_model(cls, order) -> "OrderRecord":
        return cls(
            id=order.id,
            sale_price=order.sale_price or 0.0,
            balance=order.balance or 0.0,
            product_id=order.product_id,
            job_type=order.job_type,
            down_payment=order.down_payment or 0.0,
            state=order.state,
            materials_used=tuple(
                OrderLineRecord(item.material_id, item.quantity, item.computed_cost or 0.0)
                for item in order.materials_used
            ),
            created_at=order.created_at,
        )


@dataclass(frozen=True)
class PaymentRecord:
    """Read-only payment. has_invoice routes it to the declared ledger."""

    id: int
    order_id: int
    amount: float
    has_invoice: bool = False
    date: Optional[datetime] = None

    def __post_init__(self) -> None:
        _normalize(self, "date")

    @classmethod
    def from_model(cls, payment) -> "PaymentRecord":
        return cls(
            id=payment.id,
            order_id=payment.order_id,
            amount=payment.amount,
            has_invoice=bool(payment.has_invoice),
            date=payment.date,
        )


@dataclass(frozen=True)
class ExpenseRecord:
    """Read-only expense."""

    id: int
    category: ExpenseCategory
    amount: float
    has_invoice: bool = False
    date: Optional[datetime] = None
    name: str = ""

    def __post_init__(self) -> None:
        _normalize(self, "date")

    @property
    def treatment(self) -> ExpenseTreatment:
        return self.category.treatment

    @property
    def is_operating(self) -> bool:
        return self.category.treatment is ExpenseTreatment.OPERATING

    @classmethod
    def from_model(cls, expense) -> "ExpenseRecord":
        return cls(
            id=expense.id,
            category=expense.category,
            amount=expense.amount,
            has_invoice=bool(expense.has_invoice),
            date=expense.date,
            name=expense.name,
        )


@dataclass(frozen=True)
class MovementRecord:
    """Read-only inventory movement."""

    id: int
    material_id: int
    kind: MovementKind
    quantity: float
    total_cost: float = 0.0
    date: Optional[datetime] = None
    reference_id: Optional[int] = None
    reference_type: Optional[ReferenceType] = None

    def __post_init__(self) -> None:
        _normalize(self, "date")

    @classmethod
    def from_model(cls, movement) -> "MovementRecord":
        return cls(
            id=movement.id,
            material_id=movement.material_id,
            kind=movement.kind,
            quantity=movement.quantity,
            total_cost=movement.total_cost or 0.0,
            date=movement.date,
            reference_id=movement.reference_id,
            reference_type=movement.reference_type,
        )


@dataclass(frozen=True)
class LedgerSnapshot:
    """
    Every ledger of one tenant at a point in time.

    This is the application state handed to the pure engines.

    Attributes:
        tenant_id: Tenant the records belong to
        materials, products, orders, payments, expenses, movements: Records
    """

    tenant_id: str = ""
    materials: Tuple[MaterialRecord, ...] = field(default_factory=tuple)
    products: Tuple[ProductRecord, ...] = field(default_factory=tuple)
    orders: Tuple[OrderRecord, ...] = field(default_factory=tuple)
    payments: Tuple[PaymentRecord, ...] = field(default_factory=tuple)
    expenses: Tuple[ExpenseRecord, ...] = field(default_factory=tuple)
    movements: Tuple[MovementRecord, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        for name in ("materials", "products", "orders", "payments", "expenses", "movements"):
            object.__setattr__(self, name, tuple(getattr(self, name)))
