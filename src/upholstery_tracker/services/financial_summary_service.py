"""Financial Summary Service - dual-ledger financial summary.

Two views of the same records are kept side by side:

Real (cash) ledger:
    real_profit = total_sales - (operating_expenses_total + cost_of_goods)
    Material purchases are capitalized inventory; they reach the result only
    through the frozen cost of goods of each order.

Tax-declared ledger:
    taxable_profit = declared_income - tax_deductible_total
    Invoiced material purchases are deductible when bought, so cost of goods
    is NOT subtracted here.

Income is classified by each payment's has_invoice flag. The order's
invoice_type plays no part.

``compute_financial_summary`` is a pure function over a LedgerSnapshot.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..models.enums import ExpenseTreatment, RiskLevel
from ..utils.constants import TAX_RISK_HIGH_RATIO, TAX_RISK_MEDIUM_RATIO
from .dto import LedgerSnapshot
from .ledger_service import load_snapshot


@dataclass(frozen=True)
class FinancialSummary:
    """Result of folding the payment, expense and order ledgers."""

    real_income: float
    declared_income: float
    total_sales: float
    material_purchases_total: float
    material_purchases_invoiced: float
    material_purchases_uninvoiced: float
    operating_expenses_total: float
    operating_expenses_invoiced: float
    operating_expenses_uninvoiced: float
    cost_of_goods: float
    real_profit: float
    tax_deductible_total: float
    taxable_profit: float
    tax_risk_ratio: float
    risk_level: RiskLevel

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result["risk_level"] = self.risk_level.value
        return result


def classify_tax_risk(tax_risk_ratio: float, declared_income: float) -> RiskLevel:
    """
    Classify tax exposure.

    HIGH when deductions exceed 85% of declared income; MEDIUM when they are
    under 20% of a non-zero declared income; LOW otherwise.
    """
    if tax_risk_ratio > TAX_RISK_HIGH_RATIO:
        return RiskLevel.HIGH
    if tax_risk_ratio < TAX_RISK_MEDIUM_RATIO and declared_income > 0:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def compute_financial_summary(snapshot: LedgerSnapshot) -> FinancialSummary:
    """
    Fold the ledgers of a snapshot into a FinancialSummary.

    Args:
        snapshot: Ledgers of one tenant

    Returns:
        FinancialSummary
    """
    real_income = sum(p.amount for p in snapshot.payments if not p.has_invoice)
    declared_income = sum(p.amount for p in snapshot.payments if p.has_invoice)
    total_sales = real_income + declared_income

    totals = {
        (treatment, invoiced): 0.0
        for treatment in ExpenseTreatment
        for invoiced in (True, False)
    }
    for expense in snapshot.expenses:
        totals[(expense.treatment, expense.has_invoice)] += expense.amount

    purchases_invoiced = totals[(ExpenseTreatment.CAPITALIZED, True)]
    purchases_uninvoiced = totals[(ExpenseTreatment.CAPITALIZED, False)]
    opex_invoiced = totals[(ExpenseTreatment.OPERATING, True)]
    opex_uninvoiced = totals[(ExpenseTreatment.OPERATING, False)]
    opex_total = opex_invoiced + opex_uninvoiced

    cost_of_goods = sum(order.cost_of_goods for order in snapshot.orders)

    real_profit = total_sales - (opex_total + cost_of_goods)
    tax_deductible_total = opex_invoiced + purchases_invoiced
    taxable_profit = declared_income - tax_deductible_total
    tax_risk_ratio = tax_deductible_total / declared_income if declared_income > 0 else 0.0

    return FinancialSummary(
        real_income=real_income,
        declared_income=declared_income,
        total_sales=total_sales,
        material_purchases_total=purchases_invoiced + purchases_uninvoiced,
        material_purchases_invoiced=purchases_invoiced,
        material_purchases_uninvoiced=purchases_uninvoiced,
        operating_expenses_total=opex_total,
        operating_expenses_invoiced=opex_invoiced,
        operating_expenses_uninvoiced=opex_uninvoiced,
        cost_of_goods=cost_of_goods,
        real_profit=real_profit,
        tax_deductible_total=tax_deductible_total,
        taxable_profit=taxable_profit,
        tax_risk_ratio=tax_risk_ratio,
        risk_level=classify_tax_risk(tax_risk_ratio, declared_income),
    )


def get_financial_summary(
    tenant_id: Optional[str] = None, session: Optional[Session] = None
) -> FinancialSummary:
    """Load the tenant's ledgers and compute their FinancialSummary."""
    return compute_financial_summary(load_snapshot(tenant_id=tenant_id, session=session))
