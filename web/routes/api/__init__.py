"""
API routes split by domain.

Each sub-module defines its own APIRouter; the financial ones are mounted
under /financial and composed into the top-level router exposed here.
"""
from fastapi import APIRouter

from .health import router as health_router
from .expenses import router as expenses_router
from .shipping import router as shipping_router
from .product_costs import router as product_costs_router
from .profit import router as profit_router
from .payouts import router as payouts_router
from .analysis import router as analysis_router

router = APIRouter(tags=["api"])

financial_router = APIRouter(prefix="/financial", tags=["financial"])
financial_router.include_router(expenses_router)
financial_router.include_router(shipping_router)
financial_router.include_router(product_costs_router)
financial_router.include_router(profit_router)
financial_router.include_router(payouts_router)
financial_router.include_router(analysis_router)

router.include_router(health_router)
router.include_router(financial_router)
