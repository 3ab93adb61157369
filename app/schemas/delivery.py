from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime
import uuid

from app.models.delivery import DeliveryStatus


class AssignDeliveryRequest(BaseModel):
    order_id: uuid.UUID
    driver_id: uuid.UUID
    delivery_address: str = Field(..., min_length=1, max_length=500)
    delivery_notes: Optional[str] = Field(None, max_length=1000)


class DeliveryStatusUpdate(BaseModel):
    status: DeliveryStatus


class ReassignDriverRequest(BaseModel):
    new_driver_id: uuid.UUID


class DeliveryUpdateRequest(BaseModel):
    delivery_address: str = Field(..., min_length=1, max_length=500)
    delivery_notes: Optional[str] = Field(None, max_length=1000)


class DeliverySummary(BaseModel):
    """Delivery record, also used as notification payload."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    order_id: uuid.UUID
    driver_id: Optional[uuid.UUID] = None
    status: DeliveryStatus
    delivery_address: str
    delivery_notes: Optional[str] = None
    dispatched_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    version: int


class DeliveryStats(BaseModel):
    completed: int
    active: int


def delivery_payload(delivery) -> dict:
    """JSON-ready delivery record for responses and notifications."""
    return DeliverySummary.model_validate(delivery).model_dump(mode="json")
