"""LedgerStore product cost methods."""
from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional

from bookkeeping.models import ProductCost
from bookkeeping.observability import get_logger
from bookkeeping.repositories.base import as_float, as_iso, utcnow

logger = get_logger(__name__)

_COMPONENTS = ProductCost.COMPONENTS
_COLUMNS = "id, product_id, product_name, " + ", ".join(_COMPONENTS) + ", created_at, updated_at"


def _row_to_cost(row: tuple) -> ProductCost:
    components = {name: as_float(row[3 + i]) or 0.0 for i, name in enumerate(_COMPONENTS)}
    return ProductCost(
        id=row[0],
        product_id=row[1],
        product_name=row[2],
        created_at=as_iso(row[3 + len(_COMPONENTS)]),
        updated_at=as_iso(row[4 + len(_COMPONENTS)]),
        **components,
    )


class ProductCostsMixin:

    async def add_product_cost(self, product_id: str, product_name: str, **components: float) -> ProductCost:
        """Insert a product cost; total_unit_cost is stored as the component sum."""
        values = {name: float(components.get(name) or 0) for name in _COMPONENTS}
        total = sum(values.values())
        now = utcnow()

        async with self.connection() as conn:
            row = conn.execute(f"""
                INSERT INTO product_costs
                (id, product_id, product_name, {', '.join(_COMPONENTS)}, total_unit_cost, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                RETURNING {_COLUMNS}
            """, [
                str(uuid.uuid4()), product_id, product_name,
                *values.values(), total, now, now,
            ]).fetchone()

        cost = _row_to_cost(row)
        logger.info(f"Added product cost {product_id} ({product_name}): {cost.total_unit_cost:.2f}")
        return cost

    async def get_product_cost(self, cost_id: str) -> Optional[ProductCost]:
        async with self.connection() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM product_costs WHERE id = ?", [cost_id]
            ).fetchone()
        return _row_to_cost(row) if row else None

    async def list_product_costs(self) -> List[ProductCost]:
        async with self.connection() as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM product_costs ORDER BY product_name"
            ).fetchall()
        return [_row_to_cost(r) for r in rows]

    async def update_product_cost(self, cost_id: str, changes: Dict[str, Any]) -> Optional[ProductCost]:
        """Update name or components; the stored total is recomputed from the result."""
        current = await self.get_product_cost(cost_id)
        if current is None:
            return None

        allowed = set(_COMPONENTS) | {"product_id", "product_name"}
        fields = {k: v for k, v in changes.items() if k in allowed}
        for name, value in fields.items():
            setattr(current, name, float(value or 0) if name in _COMPONENTS else value)

        assignments = [f"{name} = ?" for name in fields]
        params = [getattr(current, name) for name in fields]
        assignments += ["total_unit_cost = ?", "updated_at = ?"]
        params += [current.total_unit_cost, utcnow(), cost_id]

        async with self.connection() as conn:
            row = conn.execute(f"""
                UPDATE product_costs SET {', '.join(assignments)}
                WHERE id = ?
                RETURNING {_COLUMNS}
            """, params).fetchone()

        if not row:
            return None
        logger.info(f"Updated product cost {cost_id}: {sorted(fields)}")
        return _row_to_cost(row)

    async def delete_product_cost(self, cost_id: str) -> bool:
        async with self.connection() as conn:
            row = conn.execute(
                "DELETE FROM product_costs WHERE id = ? RETURNING id", [cost_id]
            ).fetchone()
        if row:
            logger.info(f"Deleted product cost {cost_id}")
        return row is not None
