"""
Pydantic Schemas for Request/Response Validation

Covers:
- Customer order submission (dine-in / delivery)
- Decoded order records returned to the operator
- Order desk sessions, preferences and analytics

Author: Khalil Bannouri
Version: 3.0.0
"""

from datetime import date, datetime
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from orderdesk import codec
from orderdesk.models import FulfillmentType, OrderStatus

# Totals are compared to the cent
TOTAL_TOLERANCE = 0.005


class AnalyticsRange(str, Enum):
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    CUSTOM = "custom"
    ALL = "all"


# =============================================================================
# ORDER CONTENT
# =============================================================================

class DishSnapshot(BaseModel):
    """Dish as it was priced when the order was placed."""
    id: str = Field(..., min_length=1, examples=["12"])
    name: str = Field(..., min_length=1, max_length=100, examples=["Tajine"])
    price: float = Field(..., ge=0, examples=[45.0])

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return str(v) if isinstance(v, int) else v


class OrderItem(BaseModel):
    """Single line of an order."""
    dish: DishSnapshot
    quantity: int = Field(..., ge=1, le=99, examples=[2])

    @property
    def line_total(self) -> float:
        return round(self.dish.price * self.quantity, 2)


def items_total(items: List[OrderItem]) -> float:
    return round(sum(item.dish.price * item.quantity for item in items), 2)


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class OrderCreate(BaseModel):
    """Order placed by a customer from the menu link."""

    tenant_id: str = Field(..., min_length=1, max_length=64)
    customer_name: str = Field(..., min_length=1, max_length=100, examples=["Yassine"])
    fulfillment_type: FulfillmentType = Field(default=FulfillmentType.DINE_IN)

    # Dine-in
    table_number: Optional[str] = Field(None, max_length=50, examples=["7"])
    verification_code: Optional[str] = Field(None, max_length=20, examples=["4821"])

    # Delivery
    phone: Optional[str] = Field(None, max_length=30, examples=["0612345678"])
    address: Optional[str] = Field(None, max_length=300)

    items: List[OrderItem] = Field(..., min_length=1)
    total: float = Field(..., ge=0)

    @field_validator("customer_name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("customer_name must not be blank")
        return v

    @model_validator(mode="after")
    def check_fulfillment_and_total(self) -> "OrderCreate":
        if self.fulfillment_type == FulfillmentType.DELIVERY:
            if not self.phone or not self.address:
                raise ValueError("Delivery orders require phone and address")
        elif not self.table_number:
            raise ValueError("Dine-in orders require a table_number")

        expected = items_total(self.items)
        if abs(self.total - expected) > TOTAL_TOLERANCE:
            raise ValueError(f"total {self.total} does not match items ({expected})")
        return self

    def location(self) -> codec.LocationMeta:
        """Location metadata as a codec variant."""
        return codec.from_fields(self.fulfillment_type, self.model_dump())


class StatusUpdate(BaseModel):
    """Operator status change; orders never go back to pending."""
    status: OrderStatus

    @field_validator("status")
    @classmethod
    def forward_only(cls, v: OrderStatus) -> OrderStatus:
        if v == OrderStatus.PENDING:
            raise ValueError("Orders cannot be moved back to pending")
        return v


class AutoPrintPreference(BaseModel):
    enabled: bool


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class OrderRecord(BaseModel):
    """An order with its location metadata decoded."""
    id: int
    tenant_id: str
    customer_name: str
    fulfillment_type: FulfillmentType = FulfillmentType.DINE_IN
    table_number: Optional[str] = None
    verification_code: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    items: List[OrderItem]
    total: float
    status: OrderStatus = OrderStatus.PENDING
    created_at: Optional[datetime] = None
    source: Literal["remote", "local"] = "remote"

    @property
    def is_delivery(self) -> bool:
        return self.fulfillment_type == FulfillmentType.DELIVERY


class OrderCreateResponse(BaseModel):
    """Response after accepting an order."""
    success: bool
    message: str
    order_id: int
    status: str
    total: float
    stored_locally: bool = False


class StatusUpdateResponse(BaseModel):
    """`confirmed` is False when only the local copy could be updated."""
    success: bool
    order_id: int
    status: OrderStatus
    confirmed: bool


class OrderListResponse(BaseModel):
    total: int
    orders: List[OrderRecord]


class BestSeller(BaseModel):
    name: str
    count: int


class AnalyticsResponse(BaseModel):
    range: AnalyticsRange
    custom_date: Optional[date] = None
    period_revenue: float
    period_count: int
    average_order_value: float
    best_sellers: List[BestSeller]
    max_sold_count: int


class FeedSessionResponse(BaseModel):
    """State of an operator's order feed."""
    session_id: str
    tenant_id: str
    state: str
    loading: bool
    order_count: int
    new_order_ids: List[int]
    last_polled_at: Optional[datetime] = None
    orders: List[OrderRecord]


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    local_cache: str
    printer_service: str
    alert_service: str
    timestamp: datetime
