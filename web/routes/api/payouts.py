"""Payout split and payout config endpoints."""
from fastapi import APIRouter, HTTPException, Query, Request

from web.schemas import UpdatePayoutConfigRequest
from ._deps import (
    limiter, get_store, get_engine, get_logger, READ_LIMIT, WRITE_LIMIT,
    validate_month, validate_owner_pay_type, NotFoundError, ValidationError,
)

router = APIRouter()
logger = get_logger(__name__)


@router.get("/payouts")
@limiter.limit(READ_LIMIT)
async def get_payouts(request: Request, month: str = Query(...)):
    try:
        month = validate_month(month)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    engine = await get_engine()
    payout = await engine.get_monthly_payout(month)
    if payout is None:
        raise HTTPException(status_code=404, detail=f"Payouts for {month} have not been calculated")
    return payout.to_dict()


@router.post("/payouts/calculate")
@limiter.limit(WRITE_LIMIT)
async def calculate_payouts(request: Request, month: str = Query(...)):
    """Split the stored DPP; 404 when the month's profit was never calculated."""
    try:
        month = validate_month(month)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    engine = await get_engine()
    try:
        payout = await engine.calculate_payouts(month)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return payout.to_dict()


@router.get("/payout-config")
@limiter.limit(READ_LIMIT)
async def get_payout_config(request: Request):
    store = await get_store()
    payout_config = await store.get_payout_config()
    return payout_config.to_dict()


@router.put("/payout-config")
@limiter.limit(WRITE_LIMIT)
async def update_payout_config(request: Request, body: UpdatePayoutConfigRequest):
    """Merge the given fields into the stored config."""
    changes = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None}
    try:
        if "owner_pay_type" in changes:
            changes["owner_pay_type"] = validate_owner_pay_type(changes["owner_pay_type"])
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    store = await get_store()
    payout_config = await store.update_payout_config(changes)
    return payout_config.to_dict()
