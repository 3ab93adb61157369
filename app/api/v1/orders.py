import logging
from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import Optional
from uuid import UUID

from app.core.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from app.core.dependencies import get_coordinator, get_order_manager
from app.core.errors import OrderFlowError
from app.models.order import OrderStatus, OrderType, PaymentMethod
from app.schemas.order import (
    OrderItemResponse,
    OrderRequest,
    OrderStatusUpdate,
    OrderUpdateRequest,
    PaymentUpdate,
    TodayStats,
    order_detail,
    order_payload,
)
from app.schemas.response import SuccessResponse
from app.services.coordinator import OrderDeliveryCoordinator
from app.services.order_service import OrderLifecycleManager

router = APIRouter()
log = logging.getLogger(__name__)


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_order_endpoint(
    request_data: OrderRequest,
    orders: OrderLifecycleManager = Depends(get_order_manager),
):
    """Places a new order in PENDING; prices are snapshotted from the catalog."""
    try:
        items_data = [
            {"product_id": item.product_id, "quantity": item.quantity}
            for item in request_data.items
        ]

        if not items_data:
            raise HTTPException(status_code=400, detail="Order must contain items.")

        order = await orders.create(
            order_type=request_data.order_type,
            items=items_data,
            customer_details=request_data.customer_details,
            payment_method=request_data.payment_method,
        )
        log.info(f"Order {order.id} placed successfully.")
        return SuccessResponse(message="Order created successfully", data=order_payload(order))
    except (OrderFlowError, HTTPException):
        raise
    except ValueError as e:
        log.error(f"Value error placing order: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        log.error(f"Error placing order: {e}")
        raise HTTPException(status_code=500, detail="Server failed to place order.")


@router.get("/", response_model=SuccessResponse)
async def list_orders_endpoint(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    order_type: Optional[OrderType] = None,
    is_paid: Optional[bool] = None,
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    orders: OrderLifecycleManager = Depends(get_order_manager),
):
    result = await orders.list(status=status_filter, order_type=order_type, is_paid=is_paid, limit=limit, offset=offset)
    return SuccessResponse(data=[order_payload(o) for o in result])


@router.get("/kitchen", response_model=SuccessResponse)
async def kitchen_queue_endpoint(orders: OrderLifecycleManager = Depends(get_order_manager)):
    """Orders the kitchen is expected to work on, oldest first."""
    result = await orders.kitchen_queue()
    return SuccessResponse(data=[order_payload(o) for o in result])


@router.get("/ready-for-delivery", response_model=SuccessResponse)
async def ready_for_delivery_endpoint(orders: OrderLifecycleManager = Depends(get_order_manager)):
    result = await orders.ready_for_delivery()
    return SuccessResponse(data=[order_payload(o) for o in result])


@router.get("/stats/today", response_model=SuccessResponse)
async def today_stats_endpoint(orders: OrderLifecycleManager = Depends(get_order_manager)):
    stats = await orders.today_stats()
    return SuccessResponse(data=TodayStats(**stats).model_dump(mode="json"))


@router.get("/{order_id}", response_model=SuccessResponse)
async def get_order_endpoint(order_id: UUID, orders: OrderLifecycleManager = Depends(get_order_manager)):
    """Fetches details for a specific order."""
    try:
        order = await orders.get(order_id)
        return SuccessResponse(data=order_detail(order, order.items))
    except (OrderFlowError, HTTPException):
        raise
    except Exception as e:
        log.error(f"Error fetching order {order_id}: {e}")
        raise HTTPException(status_code=500, detail="Server failed to fetch order details.")


@router.get("/{order_id}/items", response_model=SuccessResponse)
async def get_order_items_endpoint(order_id: UUID, orders: OrderLifecycleManager = Depends(get_order_manager)):
    items = await orders.items(order_id)
    return SuccessResponse(data=[OrderItemResponse.model_validate(i).model_dump(mode="json") for i in items])


@router.put("/{order_id}", response_model=SuccessResponse)
async def update_order_endpoint(
    order_id: UUID,
    payload: OrderUpdateRequest,
    orders: OrderLifecycleManager = Depends(get_order_manager),
):
    order = await orders.update_details(order_id, payload.customer_details, payload.order_type)
    return SuccessResponse(message="Order updated successfully", data=order_payload(order))


@router.patch("/{order_id}/status", response_model=SuccessResponse)
async def update_status_endpoint(
    order_id: UUID,
    payload: OrderStatusUpdate,
    coordinator: OrderDeliveryCoordinator = Depends(get_coordinator),
):
    """
    Moves the order along its lifecycle. Rejected transitions and lost races
    come back as 409 with the current and requested status.
    """
    try:
        order = await coordinator.transition_order(order_id, payload.status, payload.expected_version)
        return SuccessResponse(
            message=f"Order status successfully updated to {order.status.value}",
            data=order_payload(order),
        )
    except (OrderFlowError, HTTPException):
        raise
    except Exception as e:
        log.error(f"Error updating order status: {e}")
        raise HTTPException(status_code=500, detail="Server failed to update order status.")


@router.patch("/{order_id}/payment", response_model=SuccessResponse)
async def update_payment_endpoint(
    order_id: UUID,
    payload: PaymentUpdate,
    orders: OrderLifecycleManager = Depends(get_order_manager),
):
    order = await orders.update_payment(order_id, payload.is_paid, payload.payment_method)
    return SuccessResponse(message="Payment status updated successfully", data=order_payload(order))


@router.post("/{order_id}/mark-paid", response_model=SuccessResponse)
async def mark_paid_endpoint(
    order_id: UUID,
    payment_method: Optional[PaymentMethod] = None,
    orders: OrderLifecycleManager = Depends(get_order_manager),
):
    order = await orders.mark_paid(order_id, payment_method)
    return SuccessResponse(message="Order marked as paid successfully", data=order_payload(order))


@router.post("/{order_id}/mark-unpaid", response_model=SuccessResponse)
async def mark_unpaid_endpoint(order_id: UUID, orders: OrderLifecycleManager = Depends(get_order_manager)):
    order = await orders.mark_unpaid(order_id)
    return SuccessResponse(message="Order marked as unpaid successfully", data=order_payload(order))


@router.post("/{order_id}/recompute-total", response_model=SuccessResponse)
async def recompute_total_endpoint(order_id: UUID, orders: OrderLifecycleManager = Depends(get_order_manager)):
    order = await orders.recompute_total(order_id)
    return SuccessResponse(message="Order total recomputed", data=order_payload(order))


@router.delete("/{order_id}", response_model=SuccessResponse)
async def delete_order_endpoint(order_id: UUID, orders: OrderLifecycleManager = Depends(get_order_manager)):
    """Deletes a PENDING or CANCELLED order together with its items."""
    await orders.delete(order_id)
    return SuccessResponse(message="Order deleted successfully")
