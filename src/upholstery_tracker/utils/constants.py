"""
Constants for the Upholstery Tracker application.

This module defines all system-wide constants including:
- Application metadata
- Financial classification thresholds
- Alert rule thresholds
- Field limits
"""

# ============================================================================
# Application Metadata
# ============================================================================

APP_NAME = "Upholstery Tracker"
APP_VERSION = "0.1.0"
DATABASE_VERSION = "1.0"
DATABASE_FILENAME = "upholstery_tracker.db"

DEFAULT_TENANT_ID = "default"

# ============================================================================
# Material Defaults
# ============================================================================

UNKNOWN_MATERIAL_NAME = "Unknown material"

# Movement origins
ORIGIN_RECOVERED_ASSET = "recovered_asset"
ORIGIN_ASSET = "asset"

# ============================================================================
# Tax Risk Classification
# ============================================================================

# tax_deductible_total / declared_income
TAX_RISK_HIGH_RATIO = 0.85
TAX_RISK_MEDIUM_RATIO = 0.20

# ============================================================================
# Alert Thresholds
# ============================================================================

LOW_MARGIN_THRESHOLD = 0.20
EXPENSE_SPIKE_FACTOR = 1.20
PRODUCTION_COST_INCREASE_FACTOR = 1.10
CASH_FLOW_STABLE_FACTOR = 1.20
WASTE_INCREASE_FACTOR = 1.15
WASTE_COST_INCREASE_FACTOR = 1.05
OVERSTOCK_COVERAGE_MONTHS = 2.0

# Items younger than this are skipped by the rotation/overstock rules
MIN_AGE_DAYS_FOR_ROTATION = 30
ROTATION_WINDOW_DAYS = 30

# Margin assumed by the cash-flow projection when the month has no sales yet
DEFAULT_PROJECTION_MARGIN = 0.30

# Monthly expense estimate used when there is no history at all
DEFAULT_MONTHLY_EXPENSE_ESTIMATE = 2000.0
EXPENSE_ESTIMATE_GROWTH_FACTOR = 1.5

# Age assumed for records without a creation timestamp
UNKNOWN_AGE_DAYS = 9999

# ============================================================================
# Validation Constants
# ============================================================================

MAX_NAME_LENGTH = 200
MAX_NOTES_LENGTH = 2000
