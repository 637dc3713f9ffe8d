"""Product margin and revenue tab endpoints."""
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request

from bookkeeping.margins import SORT_KEYS
from ._deps import (
    limiter, get_engine, READ_LIMIT,
    validate_month, validate_date_range, ValidationError,
)

router = APIRouter()


@router.get("/margins")
@limiter.limit(READ_LIMIT)
async def get_margins(
    request: Request,
    month: str = Query(...),
    search: Optional[str] = Query(None),
    min_margin: Optional[float] = Query(None),
    max_margin: Optional[float] = Query(None),
    sort_by: str = Query("margin_percent"),
    descending: bool = Query(True),
):
    """Per-product margins of the month's paid orders."""
    try:
        month = validate_month(month)
        if sort_by not in SORT_KEYS:
            raise ValidationError("sort_by", f"Must be one of: {', '.join(sorted(SORT_KEYS))}", sort_by)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    engine = await get_engine()
    margins = await engine.product_margins(month, search, min_margin, max_margin, sort_by, descending)
    return {"month": month, "products": [m.to_dict() for m in margins]}


@router.get("/revenue")
@limiter.limit(READ_LIMIT)
async def get_revenue(
    request: Request,
    start_date: str = Query(...),
    end_date: str = Query(...),
):
    """Fulfilled orders by fulfillment date, with expected shipping per zone."""
    try:
        start, end = validate_date_range(start_date, end_date)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    engine = await get_engine()
    report = await engine.revenue_report(start, end)
    return report.to_dict()
