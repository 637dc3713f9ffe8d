"""Product cost basis CRUD endpoints."""
from fastapi import APIRouter, HTTPException, Request

from bookkeeping.models import ProductCost
from web.schemas import CreateProductCostRequest, UpdateProductCostRequest
from ._deps import limiter, get_store, READ_LIMIT, WRITE_LIMIT

router = APIRouter()


@router.get("/product-costs")
@limiter.limit(READ_LIMIT)
async def list_product_costs(request: Request):
    store = await get_store()
    costs = await store.list_product_costs()
    return {"product_costs": [c.to_dict() for c in costs]}


@router.get("/product-costs/{cost_id}")
@limiter.limit(READ_LIMIT)
async def get_product_cost(request: Request, cost_id: str):
    store = await get_store()
    cost = await store.get_product_cost(cost_id)
    if cost is None:
        raise HTTPException(status_code=404, detail="Product cost not found")
    return cost.to_dict()


@router.post("/product-costs")
@limiter.limit(WRITE_LIMIT)
async def create_product_cost(request: Request, body: CreateProductCostRequest):
    """Create a product cost; the total is the sum of the five components."""
    store = await get_store()
    components = {name: getattr(body, name) for name in ProductCost.COMPONENTS}
    cost = await store.add_product_cost(body.product_id, body.product_name, **components)
    return cost.to_dict()


@router.put("/product-costs/{cost_id}")
@limiter.limit(WRITE_LIMIT)
async def update_product_cost(request: Request, cost_id: str, body: UpdateProductCostRequest):
    changes = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None}
    store = await get_store()
    cost = await store.update_product_cost(cost_id, changes)
    if cost is None:
        raise HTTPException(status_code=404, detail="Product cost not found")
    return cost.to_dict()


@router.delete("/product-costs/{cost_id}")
@limiter.limit(WRITE_LIMIT)
async def delete_product_cost(request: Request, cost_id: str):
    store = await get_store()
    deleted = await store.delete_product_cost(cost_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Product cost not found")
    return {"success": True, "id": cost_id}
