"""Expense CRUD, bulk import and category breakdown endpoints."""
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request

from bookkeeping.expense_ledger import total_by_type
from bookkeeping.models import ExpenseDraft
from web.schemas import BulkExpensesRequest, BulkExpensesResponse, CreateExpenseRequest, UpdateExpenseRequest
from ._deps import (
    limiter, get_store, get_engine, get_logger, READ_LIMIT, WRITE_LIMIT,
    validate_month, validate_category, validate_expense_type, validate_date_string,
    ValidationError,
)

router = APIRouter()
logger = get_logger(__name__)


@router.get("/expenses")
@limiter.limit(READ_LIMIT)
async def list_expenses(
    request: Request,
    month: Optional[str] = Query(None),
    expense_type: Optional[str] = Query(None),
):
    """Expenses newest first, optionally for one month and type."""
    try:
        month = validate_month(month, allow_none=True)
        expense_type = validate_expense_type(expense_type)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    store = await get_store()
    expenses = await store.list_expenses(month=month, expense_type=expense_type)
    return {
        "month": month,
        "expenses": [e.to_dict() for e in expenses],
        "totals": {k: round(v, 2) for k, v in total_by_type(expenses).items()},
    }


@router.get("/expenses/breakdown")
@limiter.limit(READ_LIMIT)
async def get_expense_breakdown(request: Request, month: str = Query(...)):
    """Category totals and their share of the month's revenue."""
    try:
        month = validate_month(month)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    engine = await get_engine()
    shares = await engine.expense_breakdown(month)
    return {"month": month, "categories": [s.to_dict() for s in shares]}


@router.post("/expenses/bulk", response_model=BulkExpensesResponse)
@limiter.limit(WRITE_LIMIT)
async def import_expenses(request: Request, body: BulkExpensesRequest):
    """Import tab-separated rows; unreadable rows are dropped and counted."""
    engine = await get_engine()
    created, dropped = await engine.import_expenses(body.text)
    return BulkExpensesResponse(
        created=[e.to_dict() for e in created],
        created_count=len(created),
        dropped_count=dropped,
    )


@router.get("/expenses/{expense_id}")
@limiter.limit(READ_LIMIT)
async def get_expense(request: Request, expense_id: str):
    store = await get_store()
    expense = await store.get_expense(expense_id)
    if expense is None:
        raise HTTPException(status_code=404, detail="Expense not found")
    return expense.to_dict()


@router.post("/expenses")
@limiter.limit(WRITE_LIMIT)
async def create_expense(request: Request, body: CreateExpenseRequest):
    """Create a manual expense."""
    try:
        draft = ExpenseDraft(
            category=validate_category(body.category),
            amount=body.amount,
            date=validate_date_string(body.date).isoformat(),
            expense_type=validate_expense_type(body.expense_type, allow_none=False),
            notes=body.notes,
            product_id=body.product_id,
            product_name=body.product_name,
            quantity=body.quantity,
            unit_cost=body.unit_cost,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    store = await get_store()
    expense = await store.add_expense(draft)
    return expense.to_dict()


@router.put("/expenses/{expense_id}")
@limiter.limit(WRITE_LIMIT)
async def update_expense(request: Request, expense_id: str, body: UpdateExpenseRequest):
    """Update fields of an expense; a new date moves it to that month."""
    changes = body.model_dump(exclude_unset=True)
    try:
        if "category" in changes:
            changes["category"] = validate_category(changes["category"])
        if "expense_type" in changes:
            changes["expense_type"] = validate_expense_type(changes["expense_type"], allow_none=False)
        if "date" in changes:
            changes["date"] = validate_date_string(changes["date"]).isoformat()
        if changes.get("amount") is None:
            changes.pop("amount", None)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    store = await get_store()
    expense = await store.update_expense(expense_id, changes)
    if expense is None:
        raise HTTPException(status_code=404, detail="Expense not found")
    return expense.to_dict()


@router.delete("/expenses/{expense_id}")
@limiter.limit(WRITE_LIMIT)
async def delete_expense(request: Request, expense_id: str):
    store = await get_store()
    deleted = await store.delete_expense(expense_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Expense not found")
    return {"success": True, "id": expense_id}
