"""LedgerStore expense methods."""
from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional

from bookkeeping.models import ExpenseCategory, ExpenseDraft, ExpenseType, FinancialExpense
from bookkeeping.observability import get_logger
from bookkeeping.repositories.base import as_date, as_float, as_iso, utcnow

logger = get_logger(__name__)

_COLUMNS = """
    id, category, amount, date, expense_type, notes,
    product_id, product_name, quantity, unit_cost, created_at, updated_at
"""

# Fields a caller may change; month follows date
_UPDATABLE = {
    "category", "amount", "date", "expense_type", "notes",
    "product_id", "product_name", "quantity", "unit_cost",
}


def _row_to_expense(row: tuple) -> FinancialExpense:
    return FinancialExpense(
        id=row[0],
        category=ExpenseCategory(row[1]),
        amount=as_float(row[2]),
        date=as_iso(row[3]),
        expense_type=ExpenseType(row[4]),
        notes=row[5],
        product_id=row[6],
        product_name=row[7],
        quantity=row[8],
        unit_cost=as_float(row[9]),
        created_at=as_iso(row[10]),
        updated_at=as_iso(row[11]),
    )


def _db_value(name: str, value: Any) -> Any:
    if name in ("category", "expense_type") and value is not None:
        return getattr(value, "value", value)
    if name == "date":
        return as_date(value)
    return value


class ExpensesMixin:

    async def add_expense(self, draft: ExpenseDraft) -> FinancialExpense:
        """Insert an expense; the month is derived from its date."""
        now = utcnow()
        async with self.connection() as conn:
            row = conn.execute(f"""
                INSERT INTO financial_expenses
                (id, category, amount, date, month, expense_type, notes,
                 product_id, product_name, quantity, unit_cost, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                RETURNING {_COLUMNS}
            """, [
                str(uuid.uuid4()),
                draft.category.value,
                draft.amount,
                as_date(draft.date),
                draft.month,
                draft.expense_type.value,
                draft.notes,
                draft.product_id,
                draft.product_name,
                draft.quantity,
                draft.unit_cost,
                now,
                now,
            ]).fetchone()
        expense = _row_to_expense(row)
        logger.info(f"Added expense {expense.id}: {expense.category.value} {expense.amount:.2f} ({expense.month})")
        return expense

    async def add_expenses(self, drafts: List[ExpenseDraft]) -> List[FinancialExpense]:
        """Insert several expenses in one transaction (bulk import)."""
        if not drafts:
            return []

        created = []
        async with self.connection() as conn:
            conn.execute("BEGIN TRANSACTION")
            try:
                for draft in drafts:
                    now = utcnow()
                    row = conn.execute(f"""
                        INSERT INTO financial_expenses
                        (id, category, amount, date, month, expense_type, notes,
                         product_id, product_name, quantity, unit_cost, created_at, updated_at)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                        RETURNING {_COLUMNS}
                    """, [
                        str(uuid.uuid4()), draft.category.value, draft.amount,
                        as_date(draft.date), draft.month, draft.expense_type.value,
                        draft.notes, draft.product_id, draft.product_name,
                        draft.quantity, draft.unit_cost, now, now,
                    ]).fetchone()
                    created.append(_row_to_expense(row))
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise

        logger.info(f"Imported {len(created)} expenses")
        return created

    async def get_expense(self, expense_id: str) -> Optional[FinancialExpense]:
        async with self.connection() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM financial_expenses WHERE id = ?", [expense_id]
            ).fetchone()
        return _row_to_expense(row) if row else None

    async def list_expenses(
        self,
        month: Optional[str] = None,
        expense_type: Optional[ExpenseType] = None,
    ) -> List[FinancialExpense]:
        """Expenses newest first, optionally filtered by month and type."""
        conditions = ["1=1"]
        params: list = []
        if month:
            conditions.append("month = ?")
            params.append(month)
        if expense_type:
            conditions.append("expense_type = ?")
            params.append(expense_type.value)

        async with self.connection() as conn:
            rows = conn.execute(f"""
                SELECT {_COLUMNS} FROM financial_expenses
                WHERE {' AND '.join(conditions)}
                ORDER BY date DESC, created_at DESC
            """, params).fetchall()
        return [_row_to_expense(r) for r in rows]

    async def update_expense(self, expense_id: str, changes: Dict[str, Any]) -> Optional[FinancialExpense]:
        """
        Update fields of an expense.

        A new date moves the expense to the matching month. Returns None if
        the expense does not exist.
        """
        fields = {k: v for k, v in changes.items() if k in _UPDATABLE}
        if not fields:
            return await self.get_expense(expense_id)

        assignments = [f"{name} = ?" for name in fields]
        params = [_db_value(name, value) for name, value in fields.items()]
        if "date" in fields:
            assignments.append("month = ?")
            params.append(as_date(fields["date"]).strftime("%Y-%m"))
        assignments.append("updated_at = ?")
        params.append(utcnow())
        params.append(expense_id)

        async with self.connection() as conn:
            row = conn.execute(f"""
                UPDATE financial_expenses SET {', '.join(assignments)}
                WHERE id = ?
                RETURNING {_COLUMNS}
            """, params).fetchone()

        if not row:
            return None
        logger.info(f"Updated expense {expense_id}: {sorted(fields)}")
        return _row_to_expense(row)

    async def delete_expense(self, expense_id: str) -> bool:
        """Delete an expense. Returns True if a row was deleted."""
        async with self.connection() as conn:
            row = conn.execute(
                "DELETE FROM financial_expenses WHERE id = ? RETURNING id", [expense_id]
            ).fetchone()
        if row:
            logger.info(f"Deleted expense {expense_id}")
        return row is not None

    async def get_monthly_expense_total(self, month: str, expense_type: Optional[ExpenseType] = None) -> float:
        sql = "SELECT COALESCE(SUM(amount), 0) FROM financial_expenses WHERE month = ?"
        params: list = [month]
        if expense_type:
            sql += " AND expense_type = ?"
            params.append(expense_type.value)
        async with self.connection() as conn:
            row = conn.execute(sql, params).fetchone()
        return as_float(row[0]) or 0.0
