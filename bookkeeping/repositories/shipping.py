"""LedgerStore shipping record methods. Only manual records are persisted."""
from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional

from bookkeeping.models import ShippingRecord, ShippingRecordDraft, ShippingStatus, ShippingType
from bookkeeping.observability import get_logger
from bookkeeping.repositories.base import as_date, as_float, as_iso, utcnow

logger = get_logger(__name__)

_COLUMNS = """
    id, type, customer_shipping_charged, actual_shipping_cost, date, status,
    order_id, invoice_id, notes, created_at, updated_at
"""

_UPDATABLE = {
    "type", "customer_shipping_charged", "actual_shipping_cost", "date",
    "status", "order_id", "invoice_id", "notes",
}


def _row_to_record(row: tuple) -> ShippingRecord:
    return ShippingRecord(
        id=row[0],
        type=ShippingType(row[1]),
        customer_shipping_charged=as_float(row[2]),
        actual_shipping_cost=as_float(row[3]),
        date=as_iso(row[4]),
        status=ShippingStatus(row[5]),
        order_id=row[6],
        invoice_id=row[7],
        notes=row[8],
        is_from_tag=False,
        created_at=as_iso(row[9]),
        updated_at=as_iso(row[10]),
    )


def _db_value(name: str, value: Any) -> Any:
    if name in ("type", "status") and value is not None:
        return getattr(value, "value", value)
    if name == "date":
        return as_date(value)
    return value


class ShippingRecordsMixin:

    async def add_shipping_record(self, draft: ShippingRecordDraft) -> ShippingRecord:
        now = utcnow()
        async with self.connection() as conn:
            row = conn.execute(f"""
                INSERT INTO shipping_records
                (id, order_id, type, customer_shipping_charged, actual_shipping_cost,
                 status, date, month, invoice_id, notes, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                RETURNING {_COLUMNS}
            """, [
                str(uuid.uuid4()),
                draft.order_id,
                draft.type.value,
                draft.customer_shipping_charged,
                draft.actual_shipping_cost,
                draft.status.value,
                as_date(draft.date),
                draft.month,
                draft.invoice_id,
                draft.notes,
                now,
                now,
            ]).fetchone()
        record = _row_to_record(row)
        logger.info(f"Added {record.type.value} shipping record {record.id} for order {record.order_id}")
        return record

    async def get_shipping_record(self, record_id: str) -> Optional[ShippingRecord]:
        async with self.connection() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM shipping_records WHERE id = ?", [record_id]
            ).fetchone()
        return _row_to_record(row) if row else None

    async def list_shipping_records(self, month: Optional[str] = None) -> List[ShippingRecord]:
        """Persisted records newest first; all months when `month` is None."""
        sql = f"SELECT {_COLUMNS} FROM shipping_records"
        params: list = []
        if month:
            sql += " WHERE month = ?"
            params.append(month)
        sql += " ORDER BY date DESC, created_at DESC"

        async with self.connection() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_row_to_record(r) for r in rows]

    async def update_shipping_record(self, record_id: str, changes: Dict[str, Any]) -> Optional[ShippingRecord]:
        fields = {k: v for k, v in changes.items() if k in _UPDATABLE}
        if not fields:
            return await self.get_shipping_record(record_id)

        assignments = [f"{name} = ?" for name in fields]
        params = [_db_value(name, value) for name, value in fields.items()]
        if "date" in fields:
            assignments.append("month = ?")
            params.append(as_date(fields["date"]).strftime("%Y-%m"))
        assignments.append("updated_at = ?")
        params.append(utcnow())
        params.append(record_id)

        async with self.connection() as conn:
            row = conn.execute(f"""
                UPDATE shipping_records SET {', '.join(assignments)}
                WHERE id = ?
                RETURNING {_COLUMNS}
            """, params).fetchone()

        if not row:
            return None
        logger.info(f"Updated shipping record {record_id}: {sorted(fields)}")
        return _row_to_record(row)

    async def delete_shipping_record(self, record_id: str) -> bool:
        async with self.connection() as conn:
            row = conn.execute(
                "DELETE FROM shipping_records WHERE id = ? RETURNING id", [record_id]
            ).fetchone()
        if row:
            logger.info(f"Deleted shipping record {record_id}")
        return row is not None
