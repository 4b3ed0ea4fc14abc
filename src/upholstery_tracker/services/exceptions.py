"""Service layer exception classes for the Upholstery Tracker.

This module defines all custom exceptions used by the service layer to provide
consistent error handling across the application.

Exception Hierarchy:
    ServiceError (base)
    ├── ValidationError
    ├── InsufficientStock
    ├── InvalidAmount
    ├── InvalidStateTransition
    ├── NotFound
    │   ├── MaterialNotFound
    │   ├── ProductNotFound
    │   ├── OrderNotFound
    │   └── ExpenseNotFound
    └── PersistenceFailure
"""

from typing import List, Optional


class ServiceError(Exception):
    """Base exception for all service layer errors.

    All service-specific exceptions should inherit from this class.
    """

    pass


class ValidationError(ServiceError):
    """Raised when data validation fails."""

    def __init__(self, errors: list):
        self.errors = errors
        error_msg = "; ".join(errors)
        super().__init__(f"Validation failed: {error_msg}")


class InsufficientStock(ServiceError):
    """Raised when one or more materials don't have enough stock.

    Carries every short material, not only the first one found.

    Args:
        shortfalls: List of Shortfall records (material_id, material_name,
            required, available)

    Example:
        >>> raise InsufficientStock([Shortfall(3, "Black Vinyl", 4.0, 1.5)])
        InsufficientStock: Insufficient stock for Black Vinyl (required 4.0, available 1.5)
    """

    def __init__(self, shortfalls: List):
        self.shortfalls = list(shortfalls)
        details = ", ".join(
            f"{s.material_name} (required {s.required}, available {s.available})"
            for s in self.shortfalls
        )
        super().__init__(f"Insufficient stock for {details}")


class InvalidAmount(ServiceError):
    """Raised when a payment amount is outside [0, maximum]."""

    def __init__(self, amount: float, maximum: float):
        self.amount = amount
        self.maximum = maximum
        super().__init__(f"Invalid amount {amount}: must be between 0 and {maximum}")


class InvalidStateTransition(ServiceError):
    """Raised when an order cannot move to the requested state."""

    def __init__(self, order_id: int, current, requested):
        self.order_id = order_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Order {order_id} cannot move from {getattr(current, 'value', current)} "
            f"to {getattr(requested, 'value', requested)}"
        )


class NotFound(ServiceError):
    """Raised when a record id cannot be resolved inside the tenant."""

    entity = "Record"

    def __init__(self, record_id: int):
        self.record_id = record_id
        super().__init__(f"{self.entity} with ID {record_id} not found")


class MaterialNotFound(NotFound):
    """Raised when a material cannot be found by ID."""

    entity = "Material"

    @property
    def material_id(self) -> int:
        return self.record_id


class ProductNotFound(NotFound):
    """Raised when a product cannot be found by ID.

    Example:
        >>> raise ProductNotFound(123)
        ProductNotFound: Product with ID 123 not found
    """

    entity = "Product"

    @property
    def product_id(self) -> int:
        return self.record_id


class OrderNotFound(NotFound):
    """Raised when an order cannot be found by ID."""

    entity = "Order"

    @property
    def order_id(self) -> int:
        return self.record_id


class ExpenseNotFound(NotFound):
    """Raised when an expense cannot be found by ID."""

    entity = "Expense"

    @property
    def expense_id(self) -> int:
        return self.record_id


class PersistenceFailure(ServiceError):
    """Raised when the record store fails during a multi-record write.

    The transaction has already been rolled back when this is raised.
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.original_error = original_error
        super().__init__(f"Database error: {message}")
