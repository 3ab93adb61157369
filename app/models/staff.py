from enum import Enum
from tortoise import fields, models
import uuid


class StaffRole(str, Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    KITCHEN_STAFF = "KITCHEN_STAFF"
    DELIVERY_STAFF = "DELIVERY_STAFF"


class StaffUser(models.Model):
    """Directory entry for restaurant staff. Drivers are DELIVERY_STAFF users."""
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    username = fields.CharField(max_length=50, unique=True)
    full_name = fields.CharField(max_length=100)
    role = fields.CharEnumField(StaffRole)
    enabled = fields.BooleanField(default=True)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "users"
        indexes = [
            ("role", "enabled"),  # Available driver lookups
        ]
