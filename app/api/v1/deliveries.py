import logging
from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import Optional
from uuid import UUID

from app.core.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from app.core.dependencies import get_delivery_manager
from app.core.errors import OrderFlowError
from app.models.delivery import DeliveryStatus
from app.schemas.delivery import (
    AssignDeliveryRequest,
    DeliveryStats,
    DeliveryStatusUpdate,
    DeliveryUpdateRequest,
    ReassignDriverRequest,
    delivery_payload,
)
from app.schemas.response import SuccessResponse
from app.services.delivery_service import DeliveryLifecycleManager

router = APIRouter()
log = logging.getLogger(__name__)


@router.post("/assign", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def assign_delivery_endpoint(
    payload: AssignDeliveryRequest,
    deliveries: DeliveryLifecycleManager = Depends(get_delivery_manager),
):
    """
    Assigns a driver to an order that is READY_FOR_DELIVERY. The order moves
    to OUT_FOR_DELIVERY in the same transaction.
    """
    try:
        delivery = await deliveries.assign(
            payload.order_id,
            payload.driver_id,
            payload.delivery_address,
            payload.delivery_notes,
        )
        return SuccessResponse(message="Delivery assigned successfully", data=delivery_payload(delivery))
    except (OrderFlowError, HTTPException):
        raise
    except Exception as e:
        log.error(f"Error assigning delivery for order {payload.order_id}: {e}")
        raise HTTPException(status_code=500, detail="Server failed to assign delivery.")


@router.get("/", response_model=SuccessResponse)
async def list_deliveries_endpoint(
    status_filter: Optional[DeliveryStatus] = Query(None, alias="status"),
    driver_id: Optional[UUID] = None,
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    deliveries: DeliveryLifecycleManager = Depends(get_delivery_manager),
):
    result = await deliveries.list(status=status_filter, driver_id=driver_id, limit=limit, offset=offset)
    return SuccessResponse(data=[delivery_payload(d) for d in result])


@router.get("/active", response_model=SuccessResponse)
async def active_deliveries_endpoint(deliveries: DeliveryLifecycleManager = Depends(get_delivery_manager)):
    result = await deliveries.active()
    return SuccessResponse(data=[delivery_payload(d) for d in result])


@router.get("/stats", response_model=SuccessResponse)
async def delivery_stats_endpoint(deliveries: DeliveryLifecycleManager = Depends(get_delivery_manager)):
    stats = await deliveries.stats()
    return SuccessResponse(data=DeliveryStats(**stats).model_dump())


@router.get("/order/{order_id}", response_model=SuccessResponse)
async def delivery_by_order_endpoint(order_id: UUID, deliveries: DeliveryLifecycleManager = Depends(get_delivery_manager)):
    delivery = await deliveries.get_by_order(order_id)
    return SuccessResponse(data=delivery_payload(delivery))


@router.get("/{delivery_id}", response_model=SuccessResponse)
async def get_delivery_endpoint(delivery_id: UUID, deliveries: DeliveryLifecycleManager = Depends(get_delivery_manager)):
    delivery = await deliveries.get(delivery_id)
    return SuccessResponse(data=delivery_payload(delivery))


@router.patch("/{delivery_id}/status", response_model=SuccessResponse)
async def update_delivery_status_endpoint(
    delivery_id: UUID,
    payload: DeliveryStatusUpdate,
    deliveries: DeliveryLifecycleManager = Depends(get_delivery_manager),
):
    """DELIVERED also completes the owning order."""
    try:
        delivery = await deliveries.update_status(delivery_id, payload.status)
        return SuccessResponse(message="Delivery status updated successfully", data=delivery_payload(delivery))
    except (OrderFlowError, HTTPException):
        raise
    except Exception as e:
        log.error(f"Error updating delivery {delivery_id} status: {e}")
        raise HTTPException(status_code=500, detail="Server failed to update delivery status.")


@router.patch("/{delivery_id}/reassign", response_model=SuccessResponse)
async def reassign_driver_endpoint(
    delivery_id: UUID,
    payload: ReassignDriverRequest,
    deliveries: DeliveryLifecycleManager = Depends(get_delivery_manager),
):
    delivery = await deliveries.reassign_driver(delivery_id, payload.new_driver_id)
    return SuccessResponse(message="Driver reassigned successfully", data=delivery_payload(delivery))


@router.put("/{delivery_id}", response_model=SuccessResponse)
async def update_delivery_endpoint(
    delivery_id: UUID,
    payload: DeliveryUpdateRequest,
    deliveries: DeliveryLifecycleManager = Depends(get_delivery_manager),
):
    delivery = await deliveries.update_details(delivery_id, payload.delivery_address, payload.delivery_notes)
    return SuccessResponse(message="Delivery updated successfully", data=delivery_payload(delivery))


@router.delete("/{delivery_id}", response_model=SuccessResponse)
async def cancel_delivery_endpoint(delivery_id: UUID, deliveries: DeliveryLifecycleManager = Depends(get_delivery_manager)):
    """Cancels the delivery and reopens the order for another assignment."""
    await deliveries.cancel(delivery_id)
    return SuccessResponse(message="Delivery cancelled successfully")
