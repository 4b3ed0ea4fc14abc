"""
Enumerations for the workshop ledgers.

This module contains enums used across models and services:
- MaterialKind / UnitOfMeasure: Material classification
- OrderState / InvoiceType / PaymentMethod: Work order lifecycle and payments
- ExpenseCategory / ExpenseTreatment: Expense classification and its financial treatment
- ExpenseType / ExpenseFrequency / ExpenseArea: Expense descriptors
- MovementKind / ReferenceType: Inventory movement log
- AlertCategory / AlertPriority / RiskLevel: Derived alerts and tax risk
"""

from enum import Enum


class MaterialKind(str, Enum):
    """Kind of raw material (or recovered finished product) held in stock."""

    LEATHER = "Leather"
    SYNTHETIC_LEATHER = "Synthetic Leather"
    FABRIC = "Fabric"
    FOAM = "Foam"
    THREAD = "Thread"
    GLUE = "Glue"
    PVC = "PVC"
    ALCANTARA = "Alcantara"
    VINYL = "Vinyl"
    OTHER = "Other"
    FINISHED_PRODUCT = "Finished Product"


class UnitOfMeasure(str, Enum):
    """Unit in which a material quantity is counted."""

    METER = "Meter"
    UNIT = "Unit"
    LITER = "Liter"
    ROLL = "Roll"
    PAIR = "Pair"
    KILOGRAM = "Kilogram"
    SHEET = "Sheet"
    GALLON = "Gallon"


class OrderState(str, Enum):
    """
    Work order lifecycle state.

    Values:
        IN_PROGRESS: Created, materials consumed, being manufactured
        FINISHED: Manufacturing done
        DELIVERED: Handed over to the client
        PARTIALLY_DELIVERED: Part of the job handed over
        FULLY_PAID: Sale value registered in the payment ledger
        RETURNED: Cancelled because the client returned the work (terminal)
        MANUFACTURING_ERROR: Cancelled because of a workshop error (terminal)
    """

    IN_PROGRESS = "in_progress"
    FINISHED = "finished"
    DELIVERED = "delivered"
    PARTIALLY_DELIVERED = "partially_delivered"
    FULLY_PAID = "fully_paid"
    RETURNED = "returned"
    MANUFACTURING_ERROR = "manufacturing_error"

    @property
    def is_terminal(self) -> bool:
        """True for the cancellation states, which no operation leaves."""
        return self in (OrderState.RETURNED, OrderState.MANUFACTURING_ERROR)


class InvoiceType(str, Enum):
    """Receipt type requested by the client on the order."""

    INVOICE = "invoice"
    FINAL_CONSUMER = "final_consumer"


class PaymentMethod(str, Enum):
    """How a payment was received."""

    CASH = "cash"
    TRANSFER = "transfer"
    CARD = "card"
    DEPOSIT = "deposit"
    OTHER = "other"


class ExpenseTreatment(str, Enum):
    """
    Financial treatment of an expense.

    Values:
        CAPITALIZED: Inventory spend; excluded from operating expenses and
            expensed later through the cost of goods of each order
        OPERATING: Expensed immediately
    """

    CAPITALIZED = "capitalized"
    OPERATING = "operating"


class ExpenseCategory(str, Enum):
    """
    Expense category.

    MATERIAL_PURCHASE is the only capitalized category; every other member is
    an operating expense kind. Branch on ``treatment``, not on the value.
    """

    MATERIAL_PURCHASE = "Material Purchase"
    RENT = "Rent"
    UTILITIES = "Utilities"
    INTERNET = "Internet"
    SALARIES = "Salaries"
    TRANSPORT = "Transport"
    MAINTENANCE = "Maintenance"
    MARKETING = "Marketing"
    OFFICE_SUPPLIES = "Office Supplies"
    EQUIPMENT = "Equipment"
    SOFTWARE = "Software"
    TAXES = "Taxes"
    PROFESSIONAL_FEES = "Professional Fees"
    SECURITY = "Security"
    CLEANING = "Cleaning"
    LOGISTICS = "Logistics"
    OTHER = "Other"

    @property
    def treatment(self) -> ExpenseTreatment:
        if self is ExpenseCategory.MATERIAL_PURCHASE:
            return ExpenseTreatment.CAPITALIZED
        return ExpenseTreatment.OPERATING


class ExpenseType(str, Enum):
    """Fixed or variable expense."""

    FIXED = "fixed"
    VARIABLE = "variable"


class ExpenseFrequency(str, Enum):
    """How often an expense recurs."""

    ONCE = "once"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class ExpenseArea(str, Enum):
    """Business area an expense impacts."""

    PRODUCTION = "production"
    ADMINISTRATION = "administration"
    SALES = "sales"
    LOGISTICS = "logistics"
    MARKETING = "marketing"
    GENERAL = "general"


class MovementKind(str, Enum):
    """
    Inventory movement type.

    Values:
        PURCHASE: Stock bought (positive quantity and cost)
        CONSUMPTION: Stock used by a work order
        WASTE: Stock lost; value stays on the remaining units (cost 0)
        ASSET_INTAKE: Stock received from a non-purchase origin
        CORRECTION: Stock and value removed (negative quantity and cost)
    """

    PURCHASE = "purchase"
    CONSUMPTION = "consumption"
    WASTE = "waste"
    ASSET_INTAKE = "asset_intake"
    CORRECTION = "correction"


class ReferenceType(str, Enum):
    """Table a movement's reference_id points into."""

    ORDER = "order"
    EXPENSE = "expense"


class AlertCategory(str, Enum):
    """Area an alert belongs to."""

    INVENTORY = "inventory"
    FINANCIAL = "financial"
    OPERATIONAL = "operational"
    TAX = "tax"


class AlertPriority(str, Enum):
    """Alert urgency."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RiskLevel(str, Enum):
    """Tax exposure classification of the financial summary."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
