"""
Command-line entry point for the Upholstery Tracker.

Usage Examples:
    # Create the database and tables
    upholstery-tracker init-db

    # Drop and recreate every table
    upholstery-tracker reset-db --yes

    # Dual-ledger financial summary of the configured tenant
    upholstery-tracker summary

    # Alerts for another tenant, evaluated at a fixed time
    upholstery-tracker --tenant workshop-2 alerts --now 2026-03-15T12:00:00
"""

import argparse
import logging
import sys
from datetime import datetime
from typing import List, Optional

from upholstery_tracker.services.alert_service import get_alerts
from upholstery_tracker.services.database import (
    close_connections,
    initialize_app_database,
    reset_database,
)
from upholstery_tracker.services.exceptions import ServiceError
from upholstery_tracker.services.financial_summary_service import get_financial_summary
from upholstery_tracker.utils.config import get_config


def configure_logging(level: str) -> None:
    """Configure the root logger from the configured level name."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def print_summary(tenant_id: str) -> int:
    """Print the financial summary of a tenant."""
    summary = get_financial_summary(tenant_id=tenant_id)

    print(f"Financial summary for tenant '{tenant_id}'")
    print("-" * 48)
    print("Real ledger")
    print(f"  Total sales:            {summary.total_sales:12.2f}")
    print(f"  Operating expenses:     {summary.operating_expenses_total:12.2f}")
    print(f"  Cost of goods:          {summary.cost_of_goods:12.2f}")
    print(f"  Real profit:            {summary.real_profit:12.2f}")
    print(f"  Material purchases:     {summary.material_purchases_total:12.2f}")
    print("Declared ledger")
    print(f"  Declared income:        {summary.declared_income:12.2f}")
    print(f"  Tax deductible:         {summary.tax_deductible_total:12.2f}")
    print(f"  Taxable profit:         {summary.taxable_profit:12.2f}")
    print(f"  Deductible ratio:       {summary.tax_risk_ratio:12.2%}")
    print(f"  Tax risk:               {summary.risk_level.value.upper():>12}")
    return 0


def print_alerts(tenant_id: str, now: Optional[datetime]) -> int:
    """Print the alerts of a tenant, highest priority first."""
    alerts = get_alerts(tenant_id=tenant_id, now=now)
    order = {"high": 0, "medium": 1, "low": 2}
    alerts.sort(key=lambda a: order[a.priority.value])

    print(f"{len(alerts)} alert(s) for tenant '{tenant_id}'")
    for alert in alerts:
        print(f"[{alert.priority.value.upper():6}] {alert.category.value:11} {alert.title}")
        print(f"         {alert.message}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="upholstery-tracker",
        description="Inventory, orders and dual-ledger finances for an upholstery workshop",
    )
    config = get_config()
    parser.add_argument(
        "--version",
        action="version",
        version=f"{config.app_name} {config.app_version}",
    )
    parser.add_argument(
        "--tenant",
        help="Tenant id (default: UPHOLSTERY_TRACKER_TENANT or 'default')",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")
    subparsers.add_parser("init-db", help="Create the database and its tables")
    reset_parser = subparsers.add_parser("reset-db", help="Drop and recreate every table")
    reset_parser.add_argument(
        "--yes", action="store_true", help="Confirm that all data will be deleted"
    )
    subparsers.add_parser("summary", help="Print the financial summary")
    alerts_parser = subparsers.add_parser("alerts", help="Print the current alerts")
    alerts_parser.add_argument(
        "--now",
        type=datetime.fromisoformat,
        help="Evaluate alerts at this ISO timestamp instead of the current time",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    config = get_config()
    configure_logging(config.log_level)
    tenant_id = args.tenant or config.tenant_id

    try:
        initialize_app_database()
        if args.command == "init-db":
            print(
                f"Database ready at: {config.database_url} "
                f"(schema {config.database_version})"
            )
            return 0
        elif args.command == "reset-db":
            reset_database(confirm=args.yes)
            print(f"Database reset at: {config.database_url}")
            return 0
        elif args.command == "summary":
            return print_summary(tenant_id)
        elif args.command == "alerts":
            return print_alerts(tenant_id, args.now)
        else:
            print(f"Unknown command: {args.command}")
            return 1
    except (ServiceError, ValueError) as e:
        print(f"ERROR: {e}")
        return 1
    finally:
        close_connections()


if __name__ == "__main__":
    sys.exit(main())
