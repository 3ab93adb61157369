import logging
from typing import Dict, List, Optional
from uuid import UUID

from tortoise import timezone

from app.core.db import save_versioned
from app.core.errors import AlreadyAssigned, InvalidState, NotFound
from app.events.notifications import EventType, Notification
from app.models.delivery import Delivery, DeliveryStatus
from app.schemas.delivery import delivery_payload
from app.services.coordinator import OPEN_DELIVERY_STATUSES, OrderDeliveryCoordinator
from app.services.directory import StaffDirectory
from app.services.transitions import EntityKind, ensure_allowed

log = logging.getLogger(__name__)


class DeliveryLifecycleManager:
    """
    Owns Delivery status transitions and driver assignment. Every mutation
    runs inside a coordinator unit so the owning order changes with it.
    """

    def __init__(self, coordinator: OrderDeliveryCoordinator, directory: StaffDirectory):
        self.coordinator = coordinator
        self.directory = directory

    async def assign(
        self,
        order_id: UUID,
        driver_id: UUID,
        delivery_address: str,
        delivery_notes: Optional[str] = None,
    ) -> Delivery:
        async with self.coordinator.for_order(order_id) as unit:
            # Gate on the order before any delivery row exists
            self.coordinator.require_ready_for_delivery(unit)
            driver = await self.directory.require_driver(driver_id, unit.conn)

            if unit.delivery is not None:
                raise AlreadyAssigned(order_id, unit.delivery.id)

            ensure_allowed(EntityKind.DELIVERY, None, DeliveryStatus.PENDING, DeliveryStatus.ASSIGNED)
            delivery = await Delivery.create(
                order=unit.order,
                driver=driver,
                status=DeliveryStatus.ASSIGNED,
                delivery_address=delivery_address,
                delivery_notes=delivery_notes,
                dispatched_at=timezone.now(),
                using_db=unit.conn,
            )
            unit.delivery = delivery

            # Same transaction: a failure here also discards the delivery row
            await self.coordinator.on_delivery_assigned(unit)

            payload = delivery_payload(delivery)
            unit.notifications += [
                Notification(
                    EventType.DELIVERY_ASSIGNED,
                    f"Delivery #{delivery.id} has been assigned to driver",
                    payload,
                ),
                Notification(
                    EventType.DELIVERY_STAFF_NEW_ASSIGNMENT,
                    f"New delivery assignment #{delivery.id}",
                    payload,
                ),
            ]

        log.info(f"Delivery {delivery.id} assigned to driver {driver.id} for order {order_id}")
        return delivery

    async def update_status(self, delivery_id: UUID, requested: DeliveryStatus) -> Delivery:
        requested = DeliveryStatus(requested)

        async with self.coordinator.for_delivery(delivery_id) as unit:
            delivery = unit.delivery
            previous = delivery.status
            ensure_allowed(EntityKind.DELIVERY, delivery.id, previous, requested)

            changes = {"status": requested}
            if requested == DeliveryStatus.DELIVERED:
                changes["delivered_at"] = timezone.now()
            await save_versioned(delivery, unit.conn, "delivery", **changes)

            payload = delivery_payload(delivery)
            payload["previous_status"] = previous.value
            unit.notifications.append(
                Notification(
                    EventType.DELIVERY_STATUS_CHANGED,
                    f"Delivery #{delivery.id} status changed to {requested.value}",
                    payload,
                )
            )

            if requested == DeliveryStatus.DELIVERED:
                await self.coordinator.on_delivery_delivered(unit)

        log.info(f"Delivery {delivery_id} moved {previous.value} -> {requested.value}")
        return delivery

    async def reassign_driver(self, delivery_id: UUID, new_driver_id: UUID) -> Delivery:
        async with self.coordinator.for_delivery(delivery_id) as unit:
            delivery = unit.delivery

            # Only allow reassignment if delivery is not yet out for delivery
            if delivery.status != DeliveryStatus.ASSIGNED:
                raise InvalidState(
                    "delivery", delivery.id, delivery.status,
                    f"Cannot reassign driver for delivery with status: {delivery.status.value}",
                )

            driver = await self.directory.require_driver(new_driver_id, unit.conn)
            await save_versioned(delivery, unit.conn, "delivery", driver_id=driver.id)

            unit.notifications.append(
                Notification(
                    EventType.DELIVERY_STAFF_NEW_ASSIGNMENT,
                    f"New delivery assignment #{delivery.id}",
                    delivery_payload(delivery),
                )
            )

        log.info(f"Delivery {delivery_id} reassigned to driver {new_driver_id}")
        return delivery

    async def cancel(self, delivery_id: UUID) -> None:
        """Removes the delivery and sends the order back to READY_FOR_DELIVERY."""
        async with self.coordinator.for_delivery(delivery_id) as unit:
            delivery = unit.delivery

            if delivery.status == DeliveryStatus.DELIVERED:
                raise InvalidState("delivery", delivery.id, delivery.status, "Cannot cancel delivered delivery")
            if delivery.status == DeliveryStatus.CANCELLED:
                raise InvalidState("delivery", delivery.id, delivery.status, "Delivery is already cancelled")

            payload = delivery_payload(delivery)
            payload["previous_status"] = payload["status"]
            payload["status"] = DeliveryStatus.CANCELLED.value
            unit.notifications.append(
                Notification(
                    EventType.DELIVERY_STATUS_CHANGED,
                    f"Delivery #{delivery.id} status changed to {DeliveryStatus.CANCELLED.value}",
                    payload,
                )
            )

            await self.coordinator.on_delivery_cancelled(unit)
            await delivery.delete(using_db=unit.conn)

        log.info(f"Delivery {delivery_id} cancelled, order {unit.order.id} reopened for delivery")

    async def update_details(
        self,
        delivery_id: UUID,
        delivery_address: str,
        delivery_notes: Optional[str] = None,
    ) -> Delivery:
        async with self.coordinator.for_delivery(delivery_id) as unit:
            delivery = unit.delivery

            # Only allow updates while the delivery is still open
            if delivery.status == DeliveryStatus.DELIVERED:
                raise InvalidState("delivery", delivery.id, delivery.status, "Cannot update delivered delivery")
            if delivery.status == DeliveryStatus.CANCELLED:
                raise InvalidState("delivery", delivery.id, delivery.status, "Cannot update cancelled delivery")

            await save_versioned(
                delivery, unit.conn, "delivery",
                delivery_address=delivery_address,
                delivery_notes=delivery_notes,
            )

        return delivery

    # ----------- Queries -----------

    async def get(self, delivery_id: UUID) -> Delivery:
        delivery = await Delivery.get_or_none(id=delivery_id)
        if not delivery:
            raise NotFound("Delivery", delivery_id)
        return delivery

    async def get_by_order(self, order_id: UUID) -> Delivery:
        delivery = await Delivery.get_or_none(order_id=order_id)
        if not delivery:
            raise NotFound("Delivery for order", order_id)
        return delivery

    async def list(
        self,
        status: Optional[DeliveryStatus] = None,
        driver_id: Optional[UUID] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[Delivery]:
        filters = {}
        if status is not None:
            filters["status"] = status
        if driver_id is not None:
            filters["driver_id"] = driver_id
        return await Delivery.filter(**filters).order_by("-created_at").offset(offset).limit(limit)

    async def active(self) -> List[Delivery]:
        return await Delivery.filter(status__in=OPEN_DELIVERY_STATUSES).order_by("dispatched_at")

    async def stats(self) -> Dict[str, int]:
        return {
            "completed": await Delivery.filter(status=DeliveryStatus.DELIVERED).count(),
            "active": await Delivery.filter(status__in=OPEN_DELIVERY_STATUSES).count(),
        }
