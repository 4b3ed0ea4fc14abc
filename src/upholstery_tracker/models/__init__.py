"""
Database models package.

This package contains all SQLAlchemy ORM models for the application.
"""

from .base import Base, BaseModel
from .material import Material
from .product import Product, RecipeItem
from .order import Order, OrderItem
from .payment import Payment
from .expense import Expense
from .inventory_movement import InventoryMovement
from .enums import (
    MaterialKind,
    UnitOfMeasure,
    OrderState,
    InvoiceType,
    PaymentMethod,
    ExpenseCategory,
    ExpenseTreatment,
    ExpenseType,
    ExpenseFrequency,
    ExpenseArea,
    MovementKind,
    ReferenceType,
)

__all__ = [
    "Base",
    "BaseModel",
    # Inventory
    "Material",
    "InventoryMovement",
    # Catalog
    "Product",
    "RecipeItem",
    # Orders
    "Order",
    "OrderItem",
    "Payment",
    # Expenses
    "Expense",
    # Enums
    "MaterialKind",
    "UnitOfMeasure",
    "OrderState",
    "InvoiceType",
    "PaymentMethod",
    "ExpenseCategory",
    "ExpenseTreatment",
    "ExpenseType",
    "ExpenseFrequency",
    "ExpenseArea",
    "MovementKind",
    "ReferenceType",
]
