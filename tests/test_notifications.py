import pytest
from unittest.mock import AsyncMock
from uuid import uuid4

from app.core.errors import ProductUnavailable
from app.events.notifications import EventType, Notification, NotificationPublisher
from app.events.websocket_hub import (
    DELIVERY_STAFF_TOPIC,
    GLOBAL_TOPIC,
    KITCHEN_TOPIC,
    ORDERS_TOPIC,
    WebSocketHub,
    is_valid_topic,
    topics_for,
)
from app.core.dependencies import build_container
from app.models.order import Order, OrderStatus, OrderType
from app.testing.testing_mocks import FailingTransport, RecordingTransport


def fake_socket(fails=False):
    ws = AsyncMock()
    if fails:
        ws.send_json.side_effect = RuntimeError("socket closed")
    return ws


@pytest.mark.asyncio
async def test_publish_does_not_block_on_transport():
    transport = RecordingTransport()
    publisher = NotificationPublisher(transport)

    publisher.publish(EventType.ORDER_CREATED, "New order", {"id": "1"})
    # Delivery is scheduled, not awaited by publish
    assert transport.sent == []

    await publisher.drain()
    assert transport.types() == [EventType.ORDER_CREATED]
    assert transport.sent[0].as_message()["type"] == "ORDER_CREATED"


@pytest.mark.asyncio
async def test_failing_transport_is_swallowed():
    transport = FailingTransport()
    publisher = NotificationPublisher(transport)

    publisher.publish_all([
        Notification(EventType.ORDER_CREATED, "a", {}),
        Notification(EventType.KITCHEN_NEW_ORDER, "b", {}),
    ])
    await publisher.drain()

    assert transport.attempts == 2


@pytest.mark.asyncio
async def test_operations_succeed_when_transport_is_down(db, make_product):
    services = build_container(FailingTransport())
    product = await make_product()

    order = await services.orders.create(OrderType.PICKUP, [{"product_id": product.id, "quantity": 1}])
    confirmed = await services.orders.transition(order.id, OrderStatus.CONFIRMED)
    await services.publisher.drain()

    assert confirmed.status == OrderStatus.CONFIRMED
    assert services.publisher.transport.attempts == 3


@pytest.mark.asyncio
async def test_rolled_back_operation_publishes_nothing(services, make_product, transport):
    sold_out = await make_product(available=False)

    with pytest.raises(ProductUnavailable):
        await services.orders.create(OrderType.PICKUP, [{"product_id": sold_out.id, "quantity": 1}])
    await services.publisher.drain()

    assert transport.sent == []
    assert await Order.all().count() == 0


def test_topics_for_events():
    assert topics_for(Notification(EventType.ORDER_CREATED, "", {})) == [GLOBAL_TOPIC, ORDERS_TOPIC]
    assert topics_for(Notification(EventType.KITCHEN_NEW_ORDER, "", {})) == [KITCHEN_TOPIC]

    driver_id = str(uuid4())
    assignment = Notification(EventType.DELIVERY_STAFF_NEW_ASSIGNMENT, "", {"driver_id": driver_id})
    assert topics_for(assignment) == [DELIVERY_STAFF_TOPIC, f"user:{driver_id}"]


def test_topic_validation():
    assert is_valid_topic("kitchen")
    assert is_valid_topic(f"user:{uuid4()}")
    assert not is_valid_topic("user:")
    assert not is_valid_topic("payments")


@pytest.mark.asyncio
async def test_hub_routes_by_topic_and_drops_dead_sockets():
    hub = WebSocketHub()
    kitchen, orders, dead = fake_socket(), fake_socket(), fake_socket(fails=True)
    await hub.subscribe(kitchen, [KITCHEN_TOPIC])
    await hub.subscribe(orders, [ORDERS_TOPIC])
    await hub.subscribe(dead, [KITCHEN_TOPIC])

    await hub.send(Notification(EventType.KITCHEN_NEW_ORDER, "New order", {"id": "1"}))

    kitchen.send_json.assert_awaited_once()
    assert kitchen.send_json.call_args.args[0]["type"] == "KITCHEN_NEW_ORDER"
    orders.send_json.assert_not_awaited()
    assert hub.subscriber_count(KITCHEN_TOPIC) == 1


@pytest.mark.asyncio
async def test_hub_delivers_once_per_socket():
    hub = WebSocketHub()
    ws = fake_socket()
    await hub.subscribe(ws, [GLOBAL_TOPIC, ORDERS_TOPIC])

    await hub.send(Notification(EventType.ORDER_UPDATED, "updated", {}))

    assert ws.send_json.await_count == 1
    await hub.unsubscribe(ws)
    assert hub.subscriber_count(GLOBAL_TOPIC) == 0
