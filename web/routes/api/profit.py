"""Monthly profit statement and order listing endpoints."""
from fastapi import APIRouter, HTTPException, Query, Request

from ._deps import (
    limiter, get_engine, get_logger, READ_LIMIT, WRITE_LIMIT,
    validate_month, validate_month_range, ValidationError,
)

router = APIRouter()
logger = get_logger(__name__)


def _month_or_400(month: str) -> str:
    try:
        return validate_month(month)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/profit")
@limiter.limit(READ_LIMIT)
async def get_profit(request: Request, month: str = Query(...)):
    """Stored statement; 404 until the month has been calculated."""
    month = _month_or_400(month)
    engine = await get_engine()
    profit = await engine.get_monthly_profit(month)
    if profit is None:
        raise HTTPException(status_code=404, detail=f"Profit for {month} has not been calculated")
    return profit.to_dict()


@router.post("/profit/calculate")
@limiter.limit(WRITE_LIMIT)
async def calculate_profit(request: Request, month: str = Query(...)):
    """Recalculate from orders, expenses and shipping; overwrites the snapshot."""
    month = _month_or_400(month)
    engine = await get_engine()
    profit = await engine.calculate_profit(month)
    return profit.to_dict()


@router.get("/profit/summary")
@limiter.limit(READ_LIMIT)
async def get_profit_summary(
    request: Request,
    start_month: str = Query(...),
    end_month: str = Query(...),
):
    try:
        start_month, end_month = validate_month_range(start_month, end_month)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    engine = await get_engine()
    return await engine.get_profit_summary(start_month, end_month)


@router.get("/profit/orders")
@limiter.limit(READ_LIMIT)
async def get_profit_orders(request: Request, month: str = Query(...)):
    """Paid and cancelled-with-cost orders of the month with their net."""
    month = _month_or_400(month)
    engine = await get_engine()
    rows = await engine.order_rows(month)
    return {
        "month": month,
        "orders": [r.to_dict() for r in rows],
        "count": len(rows),
    }


@router.get("/orders")
@limiter.limit(READ_LIMIT)
async def get_orders(request: Request, month: str = Query(...)):
    """Shopify-shaped orders that touch the month's statement."""
    month = _month_or_400(month)
    engine = await get_engine()
    orders = await engine.orders_for_month(month)
    return {"month": month, "orders": [o.to_dict() for o in orders]}
