"""
Pydantic request/response models for the financial API.

Request bodies carry enum values as plain strings; routes run them through
bookkeeping.validators so bad values become HTTP 400 with a field name.
"""
from typing import Optional, List

from pydantic import BaseModel, Field

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


# ═══════════════════════════════════════════════════════════════════════════════
# HEALTH CHECK
# ═══════════════════════════════════════════════════════════════════════════════

class StoreStatus(BaseModel):
    """DuckDB store status."""
    status: str
    latency_ms: Optional[float] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(description="Service status: healthy or degraded")
    version: str = Field(description="Application version")
    uptime_seconds: int = Field(description="Uptime in seconds")
    correlation_id: Optional[str] = Field(None, description="Request correlation ID")
    store: StoreStatus


# ═══════════════════════════════════════════════════════════════════════════════
# EXPENSES
# ═══════════════════════════════════════════════════════════════════════════════

class CreateExpenseRequest(BaseModel):
    category: str
    amount: float = Field(..., ge=0)
    date: str = Field(..., pattern=DATE_PATTERN)
    expense_type: Optional[str] = "operating"
    notes: Optional[str] = None
    product_id: Optional[str] = None
    product_name: Optional[str] = None
    quantity: Optional[int] = Field(None, ge=0)
    unit_cost: Optional[float] = Field(None, ge=0)


class UpdateExpenseRequest(BaseModel):
    """Partial update; omitted fields keep their stored values."""
    category: Optional[str] = None
    amount: Optional[float] = Field(None, ge=0)
    date: Optional[str] = Field(None, pattern=DATE_PATTERN)
    expense_type: Optional[str] = None
    notes: Optional[str] = None
    product_id: Optional[str] = None
    product_name: Optional[str] = None
    quantity: Optional[int] = Field(None, ge=0)
    unit_cost: Optional[float] = Field(None, ge=0)


class BulkExpensesRequest(BaseModel):
    """Rows pasted from a spreadsheet: date<TAB>name<TAB>amount per line."""
    text: str = Field(..., min_length=1)


# ═══════════════════════════════════════════════════════════════════════════════
# SHIPPING
# ═══════════════════════════════════════════════════════════════════════════════

class CreateShippingRecordRequest(BaseModel):
    type: str
    customer_shipping_charged: float = Field(0.0, ge=0)
    actual_shipping_cost: float = Field(0.0, ge=0)
    date: str = Field(..., pattern=DATE_PATTERN)
    status: Optional[str] = None
    order_id: Optional[str] = None
    invoice_id: Optional[str] = None
    notes: Optional[str] = None


class UpdateShippingRecordRequest(BaseModel):
    type: Optional[str] = None
    customer_shipping_charged: Optional[float] = Field(None, ge=0)
    actual_shipping_cost: Optional[float] = Field(None, ge=0)
    date: Optional[str] = Field(None, pattern=DATE_PATTERN)
    status: Optional[str] = None
    order_id: Optional[str] = None
    invoice_id: Optional[str] = None
    notes: Optional[str] = None


# ═══════════════════════════════════════════════════════════════════════════════
# PRODUCT COSTS
# ═══════════════════════════════════════════════════════════════════════════════

class CreateProductCostRequest(BaseModel):
    product_id: str = Field(..., min_length=1)
    product_name: str = Field(..., min_length=1)
    crochet_labor_per_unit: float = Field(0.0, ge=0)
    yarn_cost_per_unit: float = Field(0.0, ge=0)
    helper_colors_cost_per_unit: float = Field(0.0, ge=0)
    laser_felt_cost_per_unit: float = Field(0.0, ge=0)
    packaging_per_unit: float = Field(0.0, ge=0)


class UpdateProductCostRequest(BaseModel):
    product_id: Optional[str] = Field(None, min_length=1)
    product_name: Optional[str] = Field(None, min_length=1)
    crochet_labor_per_unit: Optional[float] = Field(None, ge=0)
    yarn_cost_per_unit: Optional[float] = Field(None, ge=0)
    helper_colors_cost_per_unit: Optional[float] = Field(None, ge=0)
    laser_felt_cost_per_unit: Optional[float] = Field(None, ge=0)
    packaging_per_unit: Optional[float] = Field(None, ge=0)


# ═══════════════════════════════════════════════════════════════════════════════
# PAYOUTS
# ═══════════════════════════════════════════════════════════════════════════════

class UpdatePayoutConfigRequest(BaseModel):
    """Percentages are not required to sum to anything."""
    media_buyer_percent: Optional[float] = None
    ops_percent: Optional[float] = None
    crm_percent: Optional[float] = None
    owner_pay_type: Optional[str] = None
    owner_pay_value: Optional[float] = None


class BulkExpensesResponse(BaseModel):
    created: List[dict]
    created_count: int
    dropped_count: int
