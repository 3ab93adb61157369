from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
import uuid

from app.models.order import OrderStatus, OrderType, PaymentMethod


class OrderItemRequest(BaseModel):
    """Schema for a single item in the order request."""
    product_id: uuid.UUID
    quantity: int = Field(..., gt=0)


class OrderRequest(BaseModel):
    """Schema for the full order placement request body."""
    order_type: OrderType
    customer_details: str = Field("", max_length=500)
    payment_method: Optional[PaymentMethod] = None
    items: List[OrderItemRequest]


class OrderUpdateRequest(BaseModel):
    customer_details: str = Field(..., max_length=500)
    order_type: OrderType


class OrderStatusUpdate(BaseModel):
    """Schema for updating an order status."""
    status: OrderStatus
    # Version the client last read; a stale value fails with 409
    expected_version: int


class PaymentUpdate(BaseModel):
    is_paid: bool
    payment_method: Optional[PaymentMethod] = None


class OrderItemResponse(BaseModel):
    """Schema for an item inside the detailed order response."""
    model_config = ConfigDict(from_attributes=True)

    product_id: uuid.UUID
    product_name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal


class OrderSummary(BaseModel):
    """Order header, also used as notification payload."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    status: OrderStatus
    order_type: OrderType
    customer_details: str
    total_price: Decimal
    is_paid: bool
    payment_method: Optional[PaymentMethod] = None
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OrderDetailResponse(OrderSummary):
    """Schema for fetching detailed order information."""
    items: List[OrderItemResponse] = []


class TodayStats(BaseModel):
    order_count: int
    revenue: Decimal


def order_payload(order) -> dict:
    """JSON-ready order header for responses and notifications."""
    return OrderSummary.model_validate(order).model_dump(mode="json")


def order_detail(order, items) -> dict:
    detail = OrderDetailResponse(
        **OrderSummary.model_validate(order).model_dump(),
        items=[OrderItemResponse.model_validate(item) for item in items],
    )
    return detail.model_dump(mode="json")
