from enum import Enum
from tortoise import fields, models
import uuid


class OrderStatus(str, Enum):
    PENDING = "PENDING"  # Placed, waiting for the restaurant to accept
    CONFIRMED = "CONFIRMED"
    PREPARING = "PREPARING"  # In the kitchen
    READY_FOR_PICKUP = "READY_FOR_PICKUP"
    READY_FOR_DELIVERY = "READY_FOR_DELIVERY"  # Waiting for a driver
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class OrderType(str, Enum):
    DINE_IN = "DINE_IN"
    PICKUP = "PICKUP"
    DELIVERY = "DELIVERY"


class PaymentMethod(str, Enum):
    CASH_ON_DELIVERY = "CASH_ON_DELIVERY"
    BANK = "BANK"
    CARD = "CARD"


class Order(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    customer_details = fields.CharField(max_length=500, default="")
    order_type = fields.CharEnumField(OrderType)
    status = fields.CharEnumField(OrderStatus, default=OrderStatus.PENDING)
    total_price = fields.DecimalField(max_digits=10, decimal_places=2, default=0)
    is_paid = fields.BooleanField(default=False)
    payment_method = fields.CharEnumField(PaymentMethod, null=True)
    # Bumped on every write; status changes compare-and-set against it
    version = fields.IntField(default=1)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "orders"
        indexes = [
            ("status",),                 # Status-based filtering
            ("order_type",),
            ("is_paid",),
            ("created_at",),             # Time-based queries
            ("status", "created_at"),    # Composite: kitchen queue ordering
        ]


class OrderItem(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    order = fields.ForeignKeyField("models.Order", related_name="items", on_delete=fields.CASCADE)
    product = fields.ForeignKeyField("models.Product", related_name="order_items", on_delete=fields.RESTRICT)
    # Snapshot taken at order time, independent of later catalog changes
    product_name = fields.CharField(max_length=100)
    quantity = fields.IntField()
    unit_price = fields.DecimalField(max_digits=10, decimal_places=2)
    line_total = fields.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        table = "order_items"
        indexes = [
            ("order_id",),              # Order line items
            ("product_id",),            # Product popularity
        ]
