"""
Best-effort notification publishing.

Lifecycle operations collect ``Notification`` objects while their transaction
is open and hand them to ``NotificationPublisher.publish_all`` after commit.
Delivery to the transport runs in background tasks: the caller never awaits
it, and a transport failure is logged and dropped (at-most-once).
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Protocol, Set

log = logging.getLogger(__name__)


class EventType(str, Enum):
    ORDER_CREATED = "ORDER_CREATED"
    ORDER_UPDATED = "ORDER_UPDATED"
    ORDER_STATUS_CHANGED = "ORDER_STATUS_CHANGED"
    KITCHEN_NEW_ORDER = "KITCHEN_NEW_ORDER"
    DELIVERY_READY_ORDER = "DELIVERY_READY_ORDER"
    DELIVERY_ASSIGNED = "DELIVERY_ASSIGNED"
    DELIVERY_STATUS_CHANGED = "DELIVERY_STATUS_CHANGED"
    DELIVERY_STAFF_NEW_ASSIGNMENT = "DELIVERY_STAFF_NEW_ASSIGNMENT"


@dataclass(frozen=True)
class Notification:
    event_type: EventType
    message: str
    payload: Dict[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_message(self) -> Dict[str, Any]:
        """Wire shape shared by every transport."""
        return {
            "type": self.event_type.value,
            "message": self.message,
            "data": self.payload,
            "timestamp": self.timestamp.isoformat(),
        }


class NotificationTransport(Protocol):
    async def send(self, notification: Notification) -> None:
        ...


class NotificationPublisher:
    """Fire-and-forget bridge between lifecycle operations and a transport."""

    def __init__(self, transport: NotificationTransport):
        self.transport = transport
        self._in_flight: Set[asyncio.Task] = set()

    def publish(self, event_type: EventType, message: str, payload: Dict[str, Any]) -> None:
        self.dispatch(Notification(EventType(event_type), message, payload))

    def publish_all(self, notifications: Iterable[Notification]) -> None:
        for notification in notifications:
            self.dispatch(notification)

    def dispatch(self, notification: Notification) -> None:
        try:
            task = asyncio.get_running_loop().create_task(self._deliver(notification))
        except RuntimeError:
            log.warning(f"No running event loop, dropping {notification.event_type.value} notification")
            return
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def _deliver(self, notification: Notification) -> None:
        try:
            await self.transport.send(notification)
        except Exception:
            # Notifications are side information; never surface to the caller
            log.exception(f"Failed to deliver {notification.event_type.value} notification")

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Waits for in-flight deliveries (used at shutdown and in tests)."""
        if not self._in_flight:
            return
        _, pending = await asyncio.wait(set(self._in_flight), timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            log.warning(f"Dropped {len(pending)} notification(s) still in flight at shutdown")
