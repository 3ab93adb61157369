# app/models/__init__.py
from .catalog import Category, Product
from .delivery import Delivery, DeliveryStatus
from .order import Order, OrderItem, OrderStatus, OrderType, PaymentMethod
from .staff import StaffRole, StaffUser

# Export all models
__all__ = [
    "Category",
    "Delivery",
    "DeliveryStatus",
    "Order",
    "OrderItem",
    "OrderStatus",
    "OrderType",
    "PaymentMethod",
    "Product",
    "StaffRole",
    "StaffUser",
]
