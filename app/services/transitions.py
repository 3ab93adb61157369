"""
Order and delivery lifecycle state machines.

Both tables are fixed directed graphs: a transition is allowed only if the
requested status is listed as reachable from the current one. A
self-transition is never listed, so repeating a request is an error rather
than a no-op.
"""
from enum import Enum
from typing import Any, Dict, FrozenSet

from app.core.errors import InvalidTransition
from app.models.delivery import DeliveryStatus
from app.models.order import OrderStatus, OrderType


class EntityKind(str, Enum):
    ORDER = "order"
    DELIVERY = "delivery"


# Current status -> statuses reachable in one step
ORDER_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({
        OrderStatus.READY_FOR_PICKUP,
        OrderStatus.READY_FOR_DELIVERY,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.READY_FOR_PICKUP: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.READY_FOR_DELIVERY: frozenset({OrderStatus.OUT_FOR_DELIVERY, OrderStatus.CANCELLED}),
    OrderStatus.OUT_FOR_DELIVERY: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(),  # terminal
    OrderStatus.CANCELLED: frozenset(),  # terminal
}

DELIVERY_TRANSITIONS: Dict[DeliveryStatus, FrozenSet[DeliveryStatus]] = {
    DeliveryStatus.PENDING: frozenset({DeliveryStatus.ASSIGNED}),
    DeliveryStatus.ASSIGNED: frozenset({DeliveryStatus.OUT_FOR_DELIVERY}),
    DeliveryStatus.OUT_FOR_DELIVERY: frozenset({DeliveryStatus.DELIVERED}),
    DeliveryStatus.DELIVERED: frozenset(),  # terminal
    DeliveryStatus.CANCELLED: frozenset(),
}

_TABLES = {
    EntityKind.ORDER: (OrderStatus, ORDER_TRANSITIONS),
    EntityKind.DELIVERY: (DeliveryStatus, DELIVERY_TRANSITIONS),
}

# Statuses that belong to only one fulfilment branch
_DELIVERY_BRANCH = frozenset({OrderStatus.READY_FOR_DELIVERY, OrderStatus.OUT_FOR_DELIVERY})
_PICKUP_BRANCH = frozenset({OrderStatus.READY_FOR_PICKUP})


def is_allowed(kind: EntityKind, current: Any, requested: Any) -> bool:
    """True if ``requested`` is reachable from ``current`` in the table for ``kind``."""
    status_enum, table = _TABLES[EntityKind(kind)]
    try:
        current = status_enum(current)
        requested = status_enum(requested)
    except ValueError:
        return False
    return requested in table.get(current, frozenset())


def branch_allows(order_type: OrderType, requested: OrderStatus) -> bool:
    """Delivery orders never wait for pickup; dine-in and pickup orders never enter delivery states."""
    if OrderType(order_type) == OrderType.DELIVERY:
        return requested not in _PICKUP_BRANCH
    return requested not in _DELIVERY_BRANCH


def ensure_allowed(kind: EntityKind, entity_id: Any, current: Any, requested: Any) -> None:
    if not is_allowed(kind, current, requested):
        raise InvalidTransition(EntityKind(kind).value, entity_id, current, requested)
