"""
Expense ledger: month bucketing, totals, breakdowns and bulk TSV import.

Bulk import accepts rows pasted from a spreadsheet:

    Date        Name              Amount
    12/1/2025   Yasmin material   360
    12/6/2025   Ola pcs           1540

Rows that cannot be read are dropped without raising; callers compare the
result length with the input to detect drops.
"""
import re
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional, Any

from bookkeeping.models import ExpenseCategory, ExpenseDraft, ExpenseType, FinancialExpense
from bookkeeping.observability import get_logger
from bookkeeping.tags import leading_number

logger = get_logger(__name__)

_BULK_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")


# ═══════════════════════════════════════════════════════════════════════════════
# TOTALS
# ═══════════════════════════════════════════════════════════════════════════════

def expenses_for_month(expenses: Iterable[FinancialExpense], month: str) -> List[FinancialExpense]:
    """Expenses whose date falls in `month`, newest first."""
    selected = [e for e in expenses if e.month == month]
    return sort_expenses(selected)


def sort_expenses(expenses: Iterable[FinancialExpense]) -> List[FinancialExpense]:
    """Date descending, then created_at descending."""
    return sorted(expenses, key=lambda e: (e.date, e.created_at or ""), reverse=True)


def total_by_category(expenses: Iterable[FinancialExpense]) -> Dict[str, float]:
    totals: Dict[str, float] = {}
    for expense in expenses:
        key = expense.category.value
        totals[key] = totals.get(key, 0.0) + expense.amount
    return totals


def total_by_type(expenses: Iterable[FinancialExpense]) -> Dict[str, float]:
    """Totals per expense type; both types are always present."""
    totals = {t.value: 0.0 for t in ExpenseType}
    for expense in expenses:
        totals[expense.expense_type.value] += expense.amount
    return totals


def monthly_total(
    expenses: Iterable[FinancialExpense],
    month: str,
    expense_type: Optional[ExpenseType] = None,
) -> float:
    return sum(
        e.amount for e in expenses
        if e.month == month and (expense_type is None or e.expense_type == expense_type)
    )


@dataclass
class CategoryShare:
    category: str
    amount: float
    percent_of_revenue: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "amount": round(self.amount, 2),
            "percent_of_revenue": round(self.percent_of_revenue, 1),
        }


def expense_breakdown(expenses: Iterable[FinancialExpense], revenue: float) -> List[CategoryShare]:
    """Category totals as a share of revenue, largest first."""
    totals = total_by_category(expenses)
    shares = [
        CategoryShare(
            category=category,
            amount=amount,
            percent_of_revenue=(amount / revenue * 100) if revenue > 0 else 0.0,
        )
        for category, amount in totals.items()
    ]
    shares.sort(key=lambda s: s.amount, reverse=True)
    return shares


# ═══════════════════════════════════════════════════════════════════════════════
# BULK IMPORT
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ExpenseClassification:
    category: ExpenseCategory
    expense_type: ExpenseType
    product_name: Optional[str]


def classify_expense_name(name: str) -> ExpenseClassification:
    """
    Category and type for a free-text expense name.

    Rules are tried in order; the first keyword found (case-insensitive) wins.
    """
    lowered = name.lower()

    if "ads" in lowered:
        return ExpenseClassification(ExpenseCategory.ADS, ExpenseType.OPERATING, None)

    if "pcs" in lowered:
        product = re.sub(r"\s*pcs\s*", " ", name, count=1, flags=re.IGNORECASE).strip()
        return ExpenseClassification(
            ExpenseCategory.PRODUCTION_LABOR, ExpenseType.PRODUCTION, product or "Production"
        )

    if any(word in lowered for word in ("material", "yarn", "fiber", "felt")):
        return ExpenseClassification(ExpenseCategory.RAW_MATERIALS, ExpenseType.PRODUCTION, "Materials")

    if "delivery" in lowered:
        return ExpenseClassification(ExpenseCategory.MATERIAL_DELIVERY, ExpenseType.PRODUCTION, "Delivery")

    if "packaging" in lowered:
        return ExpenseClassification(ExpenseCategory.PACKAGING_BULK, ExpenseType.PRODUCTION, "Packaging")

    return ExpenseClassification(ExpenseCategory.OTHER, ExpenseType.PRODUCTION, name)


def parse_bulk_date(value: str) -> Optional[str]:
    """"12/1/2025" -> "2025-12-01"; None when not a real M/D/YYYY date."""
    match = _BULK_DATE.match(value.strip())
    if not match:
        return None
    month, day, year = (int(g) for g in match.groups())
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def _slug(name: str) -> str:
    return re.sub(r"\s+", "-", name.lower())


def bulk_rows(text: str) -> List[str]:
    """Non-blank lines of a pasted sheet."""
    return [line for line in (text or "").splitlines() if line.strip()]


def parse_bulk_expenses(text: str) -> List[ExpenseDraft]:
    """
    Parse tab-separated `date, name, amount` rows into expense drafts.

    Unreadable rows (header included) and negative amounts are dropped
    silently.
    """
    drafts: List[ExpenseDraft] = []
    lines = bulk_rows(text)

    for line in lines:
        parts = line.split("\t")
        if len(parts) < 3:
            continue

        date_str, name = parts[0].strip(), parts[1].strip()
        amount = leading_number(parts[2].strip().replace(",", ""))
        if amount is None or amount < 0 or not date_str or not name:
            continue

        iso_date = parse_bulk_date(date_str)
        if iso_date is None:
            continue

        rule = classify_expense_name(name)
        draft = ExpenseDraft(
            category=rule.category,
            amount=amount,
            date=iso_date,
            expense_type=rule.expense_type,
            notes=name,
        )
        if rule.expense_type == ExpenseType.PRODUCTION:
            draft.product_id = f"bulk-{_slug(name)}"
            draft.product_name = rule.product_name or name
            draft.quantity = 1
            draft.unit_cost = amount
        drafts.append(draft)

    dropped = len(lines) - len(drafts)
    if dropped:
        logger.info(f"Bulk expense import: parsed {len(drafts)} rows, dropped {dropped}")
    return drafts

