"""
WebSocket transport for lifecycle notifications.

Clients subscribe to named topics; the hub decides which topics an event
belongs to, so the lifecycle engine only ever calls ``publish``.
"""
import asyncio
import logging
from collections import defaultdict
from typing import Any, DefaultDict, Dict, Iterable, List, Set

from fastapi import WebSocket

from app.events.notifications import EventType, Notification

log = logging.getLogger(__name__)

GLOBAL_TOPIC = "notifications"
ORDERS_TOPIC = "orders"
DELIVERIES_TOPIC = "deliveries"
KITCHEN_TOPIC = "kitchen"
DELIVERY_STAFF_TOPIC = "delivery-staff"

KNOWN_TOPICS = {GLOBAL_TOPIC, ORDERS_TOPIC, DELIVERIES_TOPIC, KITCHEN_TOPIC, DELIVERY_STAFF_TOPIC}

EVENT_TOPICS: Dict[EventType, tuple] = {
    EventType.ORDER_CREATED: (GLOBAL_TOPIC, ORDERS_TOPIC),
    EventType.ORDER_UPDATED: (GLOBAL_TOPIC, ORDERS_TOPIC),
    EventType.ORDER_STATUS_CHANGED: (ORDERS_TOPIC,),
    EventType.KITCHEN_NEW_ORDER: (KITCHEN_TOPIC,),
    EventType.DELIVERY_READY_ORDER: (DELIVERY_STAFF_TOPIC,),
    EventType.DELIVERY_ASSIGNED: (GLOBAL_TOPIC, DELIVERIES_TOPIC),
    EventType.DELIVERY_STATUS_CHANGED: (DELIVERIES_TOPIC,),
    EventType.DELIVERY_STAFF_NEW_ASSIGNMENT: (DELIVERY_STAFF_TOPIC,),
}


def user_topic(user_id: Any) -> str:
    return f"user:{user_id}"


def topics_for(notification: Notification) -> List[str]:
    """Topics an event is routed to, including the assigned driver's private topic."""
    topics = list(EVENT_TOPICS.get(notification.event_type, (GLOBAL_TOPIC,)))
    driver_id = notification.payload.get("driver_id")
    if notification.event_type == EventType.DELIVERY_STAFF_NEW_ASSIGNMENT and driver_id:
        topics.append(user_topic(driver_id))
    return topics


def is_valid_topic(topic: str) -> bool:
    return topic in KNOWN_TOPICS or (topic.startswith("user:") and len(topic) > len("user:"))


class WebSocketHub:
    def __init__(self):
        self._subscribers: DefaultDict[str, Set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def subscribe(self, websocket: WebSocket, topics: Iterable[str]) -> None:
        async with self._lock:
            for topic in topics:
                self._subscribers[topic].add(websocket)

    async def unsubscribe(self, websocket: WebSocket) -> None:
        async with self._lock:
            for topic in list(self._subscribers):
                self._subscribers[topic].discard(websocket)
                if not self._subscribers[topic]:
                    del self._subscribers[topic]

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscribers.get(topic, ()))

    async def send(self, notification: Notification) -> None:
        message = notification.as_message()
        async with self._lock:
            targets = {ws for topic in topics_for(notification) for ws in self._subscribers.get(topic, ())}

        stale = []
        for websocket in targets:
            try:
                await websocket.send_json(message)
            except Exception as e:
                log.warning(f"Dropping websocket subscriber after send failure: {e}")
                stale.append(websocket)

        for websocket in stale:
            await self.unsubscribe(websocket)
