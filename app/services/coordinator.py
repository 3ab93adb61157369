"""
Cross-entity rules between an Order and its Delivery.

Every coordinated operation runs as one unit of work: a transaction that
locks the Order row first and then its Delivery row (always in that order, so
two units can never wait on each other), applies both sides of the change and
publishes the collected notifications only after the commit. If either side
raises, the transaction rolls back both and nothing is published.
"""
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, List, Optional
from uuid import UUID

from tortoise.transactions import in_transaction

from app.core.db import lock_row, save_versioned
from app.core.errors import InvalidState, NotFound
from app.events.notifications import EventType, Notification, NotificationPublisher
from app.models.delivery import Delivery, DeliveryStatus
from app.models.order import Order, OrderStatus, OrderType
from app.schemas.delivery import delivery_payload
from app.services.order_service import OrderLifecycleManager
from app.services.transitions import EntityKind, ensure_allowed

log = logging.getLogger(__name__)

OPEN_DELIVERY_STATUSES = (DeliveryStatus.ASSIGNED, DeliveryStatus.OUT_FOR_DELIVERY)


@dataclass
class CoordinatedUnit:
    conn: Any
    order: Order
    delivery: Optional[Delivery]
    notifications: List[Notification] = field(default_factory=list)


class OrderDeliveryCoordinator:

    def __init__(self, orders: OrderLifecycleManager, publisher: NotificationPublisher):
        self.orders = orders
        self.publisher = publisher

    # ----------- Units of work -----------

    @asynccontextmanager
    async def for_order(self, order_id: UUID, expected_version: Optional[int] = None) -> AsyncIterator[CoordinatedUnit]:
        async with in_transaction() as conn:
            order = await self.orders.lock(order_id, conn)
            self.orders.check_version(order, expected_version)
            delivery = await lock_row(Delivery, conn, order_id=order.id)
            unit = CoordinatedUnit(conn=conn, order=order, delivery=delivery)
            yield unit

        self.publisher.publish_all(unit.notifications)

    @asynccontextmanager
    async def for_delivery(self, delivery_id: UUID) -> AsyncIterator[CoordinatedUnit]:
        # Unlocked read only to find the owning order; the real read happens under lock
        order_ids = await Delivery.filter(id=delivery_id).values_list("order_id", flat=True)
        if not order_ids:
            raise NotFound("Delivery", delivery_id)

        async with self.for_order(order_ids[0]) as unit:
            if unit.delivery is None or str(unit.delivery.id) != str(delivery_id):
                # Deleted or replaced between the lookup and the lock
                raise NotFound("Delivery", delivery_id)
            yield unit

    # ----------- Coupling rules -----------

    def require_ready_for_delivery(self, unit: CoordinatedUnit) -> None:
        """A delivery may only be created for an order waiting in READY_FOR_DELIVERY."""
        if unit.order.status != OrderStatus.READY_FOR_DELIVERY:
            raise InvalidState(
                "order", unit.order.id, unit.order.status,
                "Order must be READY_FOR_DELIVERY to assign delivery. "
                f"Current status: {unit.order.status.value}",
            )

    async def on_delivery_assigned(self, unit: CoordinatedUnit) -> None:
        unit.notifications += await self.orders.apply_transition(unit.order, OrderStatus.OUT_FOR_DELIVERY, unit.conn)

    async def on_delivery_delivered(self, unit: CoordinatedUnit) -> None:
        unit.notifications += await self.orders.apply_transition(unit.order, OrderStatus.COMPLETED, unit.conn)

    async def on_delivery_cancelled(self, unit: CoordinatedUnit) -> None:
        unit.notifications += await self.orders.apply_revert_to_ready_for_delivery(unit.order, unit.conn)

    # ----------- Order transitions requested from outside -----------

    async def transition_order(
        self,
        order_id: UUID,
        requested: OrderStatus,
        expected_version: int,
    ) -> Order:
        """
        Order status change requested by staff. The caller passes the version
        it read, so two requests prepared against the same snapshot cannot
        both succeed. Delivery-coupled statuses are only entered through the
        delivery operations.
        """
        requested = OrderStatus(requested)

        async with self.for_order(order_id, expected_version) as unit:
            order, delivery = unit.order, unit.delivery
            ensure_allowed(EntityKind.ORDER, order.id, order.status, requested)

            if requested == OrderStatus.OUT_FOR_DELIVERY:
                raise InvalidState(
                    "order", order.id, order.status,
                    "Orders go out for delivery only by assigning a delivery",
                )

            if (
                requested == OrderStatus.COMPLETED
                and order.order_type == OrderType.DELIVERY
                and (delivery is None or delivery.status != DeliveryStatus.DELIVERED)
            ):
                raise InvalidState(
                    "order", order.id, order.status,
                    "Delivery orders complete only when their delivery is DELIVERED",
                )

            unit.notifications += await self.orders.apply_transition(order, requested, unit.conn)

            if requested == OrderStatus.CANCELLED and delivery is not None and delivery.status in OPEN_DELIVERY_STATUSES:
                await self._cancel_open_delivery(unit)

        return unit.order

    async def _cancel_open_delivery(self, unit: CoordinatedUnit) -> None:
        delivery = unit.delivery
        previous = delivery.status
        await save_versioned(delivery, unit.conn, "delivery", status=DeliveryStatus.CANCELLED)
        log.info(f"Delivery {delivery.id} cancelled together with order {unit.order.id}")

        payload = delivery_payload(delivery)
        payload["previous_status"] = previous.value
        unit.notifications.append(
            Notification(
                EventType.DELIVERY_STATUS_CHANGED,
                f"Delivery #{delivery.id} status changed to {DeliveryStatus.CANCELLED.value}",
                payload,
            )
        )
