import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from tortoise import timezone
from tortoise.transactions import in_transaction

from app.core.db import lock_row, save_versioned
from app.core.errors import Conflict, InvalidState, InvalidTransition, NotFound, ProductUnavailable
from app.events.notifications import EventType, Notification, NotificationPublisher
from app.models.delivery import Delivery
from app.models.order import Order, OrderItem, OrderStatus, OrderType, PaymentMethod
from app.schemas.order import order_payload
from app.services.catalog_service import CatalogService
from app.services.transitions import EntityKind, branch_allows, ensure_allowed

log = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")

DELETABLE_STATUSES = (OrderStatus.PENDING, OrderStatus.CANCELLED)
EDITABLE_STATUSES = (OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PREPARING)
KITCHEN_STATUSES = (OrderStatus.CONFIRMED, OrderStatus.PREPARING)


class OrderLifecycleManager:
    """
    Owns Order status transitions, price computation and deletion rules.

    Public operations open their own transaction and publish notifications
    after commit. The ``apply_*`` methods run inside a caller's transaction on
    an already-locked order and return the notifications to publish; the
    coordinator uses them to couple order and delivery changes.
    """

    def __init__(self, publisher: NotificationPublisher, catalog: CatalogService):
        self.publisher = publisher
        self.catalog = catalog

    # ----------- Intake -----------

    async def create(
        self,
        order_type: OrderType,
        items: List[Dict[str, Any]],
        customer_details: str = "",
        payment_method: Optional[PaymentMethod] = None,
    ) -> Order:
        """
        Creates the Order and its items in one transaction. Every product is
        resolved and checked before the first write, so a missing or
        unavailable product leaves nothing behind.
        """
        if not items:
            raise ValueError("Order must contain items.")

        async with in_transaction() as conn:
            lines = []
            total = Decimal("0")

            for it in items:
                product_id = it["product_id"]
                qty = int(it["quantity"])
                if qty <= 0:
                    raise ValueError(f"Quantity for product {product_id} must be positive.")

                product = await self.catalog.find_by_id(product_id, conn)
                if not product:
                    raise NotFound("Product", product_id)
                if not product.is_available:
                    raise ProductUnavailable(product.id, product.name)

                unit_price = Decimal(product.price)
                line_total = (unit_price * qty).quantize(TWO_PLACES)
                total += line_total
                lines.append((product, qty, unit_price, line_total))

            order = await Order.create(
                order_type=order_type,
                customer_details=customer_details,
                payment_method=payment_method,
                status=OrderStatus.PENDING,
                total_price=total.quantize(TWO_PLACES),
                using_db=conn,
            )

            for product, qty, unit_price, line_total in lines:
                await OrderItem.create(
                    order=order,
                    product=product,
                    product_name=product.name,
                    quantity=qty,
                    unit_price=unit_price,
                    line_total=line_total,
                    using_db=conn,
                )

        log.info(f"Order {order.id} created with {len(lines)} item(s), total {order.total_price}")
        payload = order_payload(order)
        self.publisher.publish_all([
            Notification(EventType.ORDER_CREATED, f"New order #{order.id} has been created", payload),
            Notification(EventType.KITCHEN_NEW_ORDER, f"New order #{order.id} for kitchen preparation", payload),
        ])
        return order

    # ----------- Status transitions -----------

    async def lock(self, order_id: UUID, conn: Any) -> Order:
        order = await lock_row(Order, conn, id=order_id)
        if not order:
            raise NotFound("Order", order_id)
        return order

    async def transition(
        self,
        order_id: UUID,
        requested: OrderStatus,
        expected_version: Optional[int] = None,
    ) -> Order:
        """
        Status change on the kitchen path (confirm, prepare, ready, pickup
        completion, cancellation before dispatch). Orders out for delivery
        are owned by their delivery: moving into or out of OUT_FOR_DELIVERY
        goes through ``OrderDeliveryCoordinator``.
        """
        requested = OrderStatus(requested)
        async with in_transaction() as conn:
            order = await self.lock(order_id, conn)
            self.check_version(order, expected_version)
            if OrderStatus.OUT_FOR_DELIVERY in (order.status, requested):
                raise InvalidState(
                    "order", order.id, order.status,
                    "Orders out for delivery change status only together with their delivery",
                )
            notifications = await self.apply_transition(order, requested, conn)

        self.publisher.publish_all(notifications)
        return order

    def check_version(self, order: Order, expected_version: Optional[int]) -> None:
        if expected_version is not None and order.version != expected_version:
            raise Conflict("order", order.id, expected_version=expected_version, actual_version=order.version)

    async def apply_transition(self, order: Order, requested: OrderStatus, conn: Any) -> List[Notification]:
        """Validates and writes one status change on a locked order."""
        requested = OrderStatus(requested)
        ensure_allowed(EntityKind.ORDER, order.id, order.status, requested)

        if not branch_allows(order.order_type, requested):
            raise InvalidTransition(
                "order", order.id, order.status, requested,
                reason=f"{order.order_type.value} orders cannot move to {requested.value}",
            )

        return await self._write_status(order, requested, conn)

    async def apply_revert_to_ready_for_delivery(self, order: Order, conn: Any) -> List[Notification]:
        """
        Compensating move used when a delivery is cancelled. It is the one edge
        outside the transition table and is only valid from OUT_FOR_DELIVERY.
        """
        if order.status != OrderStatus.OUT_FOR_DELIVERY:
            raise InvalidState(
                "order", order.id, order.status,
                f"Cannot reopen order for delivery from status: {order.status.value}",
            )
        return await self._write_status(order, OrderStatus.READY_FOR_DELIVERY, conn)

    async def _write_status(self, order: Order, requested: OrderStatus, conn: Any) -> List[Notification]:
        previous = order.status
        await save_versioned(order, conn, "order", status=requested)
        log.info(f"Order {order.id} moved {previous.value} -> {requested.value}")

        payload = order_payload(order)
        payload["previous_status"] = previous.value
        notifications = [
            Notification(
                EventType.ORDER_STATUS_CHANGED,
                f"Order #{order.id} status changed to {requested.value}",
                payload,
            )
        ]
        if requested == OrderStatus.READY_FOR_DELIVERY:
            notifications.append(
                Notification(EventType.DELIVERY_READY_ORDER, f"Order #{order.id} is ready for delivery", payload)
            )
        return notifications

    # ----------- Other mutations -----------

    async def delete(self, order_id: UUID) -> None:
        async with in_transaction() as conn:
            order = await self.lock(order_id, conn)

            # Only allow deletion of pending or cancelled orders
            if order.status not in DELETABLE_STATUSES:
                raise InvalidState(
                    "order", order.id, order.status,
                    f"Cannot delete order with status: {order.status.value}",
                )
            await OrderItem.filter(order_id=order.id).using_db(conn).delete()
            await Delivery.filter(order_id=order.id).using_db(conn).delete()
            await order.delete(using_db=conn)

        log.info(f"Order {order_id} deleted")

    async def update_details(self, order_id: UUID, customer_details: str, order_type: OrderType) -> Order:
        async with in_transaction() as conn:
            order = await self.lock(order_id, conn)
            if order.status not in EDITABLE_STATUSES:
                raise InvalidState(
                    "order", order.id, order.status,
                    f"Cannot edit order with status: {order.status.value}",
                )
            await save_versioned(order, conn, "order", customer_details=customer_details, order_type=order_type)

        self._publish_updated(order)
        return order

    async def update_payment(
        self,
        order_id: UUID,
        is_paid: bool,
        payment_method: Optional[PaymentMethod] = None,
    ) -> Order:
        """Payment state is orthogonal to status and allowed in any status."""
        async with in_transaction() as conn:
            order = await self.lock(order_id, conn)
            changes = {"is_paid": is_paid}
            if payment_method is not None:
                changes["payment_method"] = payment_method
            await save_versioned(order, conn, "order", **changes)

        self._publish_updated(order)
        return order

    async def mark_paid(self, order_id: UUID, payment_method: Optional[PaymentMethod] = None) -> Order:
        return await self.update_payment(order_id, True, payment_method)

    async def mark_unpaid(self, order_id: UUID) -> Order:
        return await self.update_payment(order_id, False)

    async def recompute_total(self, order_id: UUID) -> Order:
        """Recomputes total_price from the stored price snapshots, not the live catalog."""
        async with in_transaction() as conn:
            order = await self.lock(order_id, conn)
            items = await OrderItem.filter(order_id=order.id).using_db(conn)
            total = sum((Decimal(i.unit_price) * i.quantity for i in items), Decimal("0"))
            await save_versioned(order, conn, "order", total_price=total.quantize(TWO_PLACES))

        self._publish_updated(order)
        return order

    def _publish_updated(self, order: Order) -> None:
        self.publisher.publish(EventType.ORDER_UPDATED, f"Order #{order.id} has been updated", order_payload(order))

    # ----------- Queries -----------

    async def get(self, order_id: UUID) -> Order:
        order = await Order.get_or_none(id=order_id).prefetch_related("items")
        if not order:
            raise NotFound("Order", order_id)
        return order

    async def items(self, order_id: UUID) -> List[OrderItem]:
        if not await Order.exists(id=order_id):
            raise NotFound("Order", order_id)
        return await OrderItem.filter(order_id=order_id)

    async def list(
        self,
        status: Optional[OrderStatus] = None,
        order_type: Optional[OrderType] = None,
        is_paid: Optional[bool] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[Order]:
        filters = {}
        if status is not None:
            filters["status"] = status
        if order_type is not None:
            filters["order_type"] = order_type
        if is_paid is not None:
            filters["is_paid"] = is_paid
        return await Order.filter(**filters).order_by("-created_at").offset(offset).limit(limit)

    async def kitchen_queue(self) -> List[Order]:
        return await Order.filter(status__in=KITCHEN_STATUSES).order_by("created_at")

    async def ready_for_delivery(self) -> List[Order]:
        return await Order.filter(status=OrderStatus.READY_FOR_DELIVERY).order_by("created_at")

    async def today_stats(self) -> Dict[str, Any]:
        """Count and revenue of today's orders, cancelled ones excluded."""
        start = timezone.now().replace(hour=0, minute=0, second=0, microsecond=0)
        totals = await (
            Order.filter(created_at__gte=start)
            .exclude(status=OrderStatus.CANCELLED)
            .values_list("total_price", flat=True)
        )
        revenue = sum((Decimal(t) for t in totals), Decimal("0"))
        return {"order_count": len(totals), "revenue": revenue.quantize(TWO_PLACES)}
