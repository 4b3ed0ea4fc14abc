"""Service layer logging utilities.

Provides structured logging functions for service operations, enabling
consistent log format and context across the ledgers.

Usage:
    from upholstery_tracker.services.logging_utils import get_service_logger, log_operation

    logger = get_service_logger(__name__)

    # Log successful operation
    log_operation(
        logger,
        operation="create_order",
        outcome="success",
        order_id=12,
        product_id=3,
    )

    # Log validation failure
    log_operation(
        logger,
        operation="create_order",
        outcome="insufficient_stock",
        level=logging.WARNING,
        product_id=3,
        missing_materials=["Black Vinyl"],
    )
"""

import logging
from typing import Any


def get_service_logger(name: str) -> logging.Logger:
    """
    Get a logger configured for service operations.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Logger under the 'upholstery_tracker.services' prefix.

    Example:
        >>> logger = get_service_logger(__name__)
        >>> logger.name
        'upholstery_tracker.services.order_service'
    """
    if "." in name:
        name = name.split(".")[-1]
    return logging.getLogger(f"upholstery_tracker.services.{name}")


def log_operation(
    logger: logging.Logger,
    operation: str,
    outcome: str,
    level: int = logging.INFO,
    **context: Any,
) -> None:
    """
    Log a service operation with structured context.

    The context is passed via the 'extra' parameter for structured logging.

    Args:
        logger: Logger instance to use
        operation: Operation name (e.g., "register_waste", "create_order")
        outcome: Outcome description (e.g., "success", "validation_failed", "error")
        level: Log level (default: INFO)
        **context: Additional context fields (entity IDs, error details, etc.)
            Common fields:
            - material_id: Material being mutated
            - order_id: Order created or changed
            - error: Error message if outcome is "error"
    """
    extra = {
        "operation": operation,
        "outcome": outcome,
        **context,
    }
    logger.log(level, f"{operation}: {outcome}", extra=extra)
