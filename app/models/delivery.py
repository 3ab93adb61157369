from enum import Enum
from tortoise import fields, models
import uuid


class DeliveryStatus(str, Enum):
    PENDING = "PENDING"
    ASSIGNED = "ASSIGNED"  # Driver chosen, dispatched_at stamped
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"  # Terminal, delivered_at stamped
    CANCELLED = "CANCELLED"


class Delivery(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    # One delivery per order, removed together with the order
    order = fields.OneToOneField("models.Order", related_name="delivery", on_delete=fields.CASCADE)
    driver = fields.ForeignKeyField(
        "models.StaffUser", related_name="deliveries", null=True, on_delete=fields.SET_NULL
    )
    status = fields.CharEnumField(DeliveryStatus, default=DeliveryStatus.PENDING)
    delivery_address = fields.CharField(max_length=500)
    delivery_notes = fields.CharField(max_length=1000, null=True)
    dispatched_at = fields.DatetimeField(null=True)
    delivered_at = fields.DatetimeField(null=True)
    version = fields.IntField(default=1)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "deliveries"
        indexes = [
            ("status",),
            ("driver_id",),
            ("driver_id", "status"),  # Driver's open deliveries
        ]
