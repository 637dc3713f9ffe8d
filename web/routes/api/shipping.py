"""Shipping ledger and carrier performance endpoints."""
from fastapi import APIRouter, HTTPException, Query, Request

from bookkeeping.models import ShippingRecordDraft
from web.schemas import CreateShippingRecordRequest, UpdateShippingRecordRequest
from ._deps import (
    limiter, get_store, get_engine, get_logger, READ_LIMIT, WRITE_LIMIT,
    validate_month, validate_date_string, validate_shipping_type, validate_shipping_status,
    ValidationError,
)

router = APIRouter()
logger = get_logger(__name__)


@router.get("/shipping")
@limiter.limit(READ_LIMIT)
async def get_shipping_ledger(request: Request, month: str = Query(...)):
    """Stored records plus records derived from order tags, newest first."""
    try:
        month = validate_month(month)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    engine = await get_engine()
    records, shadowing = await engine.shipping_ledger_with_shadows(month)
    return {
        "month": month,
        "records": [r.to_dict() for r in records],
        "total_cost": round(sum(r.actual_shipping_cost for r in records), 2),
        "total_charged": round(sum(r.customer_shipping_charged for r in records), 2),
        # Stored records of other months that hide this month's tag-derived ones
        "shadowing_records": [r.to_dict() for r in shadowing],
    }


@router.get("/shipping/performance")
@limiter.limit(READ_LIMIT)
async def get_shipping_performance(request: Request, month: str = Query(...)):
    try:
        month = validate_month(month)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    engine = await get_engine()
    performance = await engine.shipping_performance(month)
    return {"month": month, **performance.to_dict()}


@router.post("/shipping")
@limiter.limit(WRITE_LIMIT)
async def create_shipping_record(request: Request, body: CreateShippingRecordRequest):
    """Create a manual shipping record (shadows the order's tag-derived record)."""
    try:
        draft = ShippingRecordDraft(
            type=validate_shipping_type(body.type),
            customer_shipping_charged=body.customer_shipping_charged,
            actual_shipping_cost=body.actual_shipping_cost,
            date=validate_date_string(body.date).isoformat(),
            status=validate_shipping_status(body.status),
            order_id=body.order_id,
            invoice_id=body.invoice_id,
            notes=body.notes,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    store = await get_store()
    record = await store.add_shipping_record(draft)
    return record.to_dict()


@router.put("/shipping/{record_id}")
@limiter.limit(WRITE_LIMIT)
async def update_shipping_record(request: Request, record_id: str, body: UpdateShippingRecordRequest):
    changes = body.model_dump(exclude_unset=True)
    try:
        if "type" in changes:
            changes["type"] = validate_shipping_type(changes["type"])
        if "status" in changes:
            changes["status"] = validate_shipping_status(changes["status"])
        if "date" in changes:
            changes["date"] = validate_date_string(changes["date"]).isoformat()
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    for name in ("customer_shipping_charged", "actual_shipping_cost"):
        if name in changes and changes[name] is None:
            del changes[name]

    store = await get_store()
    record = await store.update_shipping_record(record_id, changes)
    if record is None:
        raise HTTPException(status_code=404, detail="Shipping record not found")
    return record.to_dict()


@router.delete("/shipping/{record_id}")
@limiter.limit(WRITE_LIMIT)
async def delete_shipping_record(request: Request, record_id: str):
    store = await get_store()
    deleted = await store.delete_shipping_record(record_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Shipping record not found")
    return {"success": True, "id": record_id}
