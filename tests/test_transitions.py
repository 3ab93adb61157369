import pytest
from uuid import uuid4

from app.core.errors import InvalidTransition
from app.models.delivery import DeliveryStatus
from app.models.order import OrderStatus, OrderType
from app.services.transitions import EntityKind, branch_allows, ensure_allowed, is_allowed

S = OrderStatus

EXPECTED_ORDER_EDGES = {
    (S.PENDING, S.CONFIRMED), (S.PENDING, S.CANCELLED),
    (S.CONFIRMED, S.PREPARING), (S.CONFIRMED, S.CANCELLED),
    (S.PREPARING, S.READY_FOR_PICKUP), (S.PREPARING, S.READY_FOR_DELIVERY), (S.PREPARING, S.CANCELLED),
    (S.READY_FOR_PICKUP, S.COMPLETED), (S.READY_FOR_PICKUP, S.CANCELLED),
    (S.READY_FOR_DELIVERY, S.OUT_FOR_DELIVERY), (S.READY_FOR_DELIVERY, S.CANCELLED),
    (S.OUT_FOR_DELIVERY, S.COMPLETED), (S.OUT_FOR_DELIVERY, S.CANCELLED),
}

EXPECTED_DELIVERY_EDGES = {
    (DeliveryStatus.PENDING, DeliveryStatus.ASSIGNED),
    (DeliveryStatus.ASSIGNED, DeliveryStatus.OUT_FOR_DELIVERY),
    (DeliveryStatus.OUT_FOR_DELIVERY, DeliveryStatus.DELIVERED),
}


@pytest.mark.parametrize("current", list(OrderStatus))
def test_order_table_matches_lifecycle(current):
    """Every (current, requested) pair is allowed exactly when it is a lifecycle edge"""
    for requested in OrderStatus:
        expected = (current, requested) in EXPECTED_ORDER_EDGES
        assert is_allowed(EntityKind.ORDER, current, requested) is expected, (current, requested)


@pytest.mark.parametrize("current", list(DeliveryStatus))
def test_delivery_table_matches_lifecycle(current):
    for requested in DeliveryStatus:
        expected = (current, requested) in EXPECTED_DELIVERY_EDGES
        assert is_allowed(EntityKind.DELIVERY, current, requested) is expected, (current, requested)


def test_self_transitions_are_rejected():
    for status in OrderStatus:
        assert not is_allowed(EntityKind.ORDER, status, status)
    for status in DeliveryStatus:
        assert not is_allowed(EntityKind.DELIVERY, status, status)


def test_terminal_statuses_have_no_exits():
    for requested in OrderStatus:
        assert not is_allowed(EntityKind.ORDER, S.COMPLETED, requested)
        assert not is_allowed(EntityKind.ORDER, S.CANCELLED, requested)


def test_accepts_raw_values_and_rejects_unknown_ones():
    assert is_allowed("order", "PENDING", "CONFIRMED")
    assert not is_allowed(EntityKind.ORDER, "PENDING", "SHIPPED")
    assert not is_allowed(EntityKind.DELIVERY, "LOST", "DELIVERED")


def test_ensure_allowed_reports_both_statuses():
    order_id = uuid4()
    with pytest.raises(InvalidTransition) as exc_info:
        ensure_allowed(EntityKind.ORDER, order_id, S.PENDING, S.COMPLETED)

    err = exc_info.value
    assert err.current == S.PENDING
    assert err.requested == S.COMPLETED
    assert err.details["current"] == "PENDING"
    assert err.details["requested"] == "COMPLETED"
    assert err.details["entity_id"] == str(order_id)


def test_branch_rule_by_order_type():
    assert branch_allows(OrderType.DELIVERY, S.READY_FOR_DELIVERY)
    assert not branch_allows(OrderType.DELIVERY, S.READY_FOR_PICKUP)

    for order_type in (OrderType.PICKUP, OrderType.DINE_IN):
        assert branch_allows(order_type, S.READY_FOR_PICKUP)
        assert not branch_allows(order_type, S.READY_FOR_DELIVERY)
        assert not branch_allows(order_type, S.OUT_FOR_DELIVERY)
        assert branch_allows(order_type, S.CANCELLED)
