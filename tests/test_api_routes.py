import pytest
from datetime import datetime, timezone
from decimal import Decimal
from fastapi.testclient import TestClient
from fastapi import WebSocketDisconnect
from types import SimpleNamespace
from uuid import uuid4

from tortoise.exceptions import IntegrityError

from app.core.dependencies import get_catalog, get_coordinator, get_delivery_manager, get_directory, get_order_manager
from app.core.errors import AlreadyExists, InvalidState, InvalidTransition, NotFound
from app.main import app
from app.models.delivery import DeliveryStatus
from app.models.order import OrderStatus, OrderType
from app.testing.testing_mocks import mock_service


def fake_order(**overrides):
    now = datetime.now(timezone.utc)
    data = dict(
        id=uuid4(),
        status=OrderStatus.PENDING,
        order_type=OrderType.DELIVERY,
        customer_details="Jane, 12 Main St",
        total_price=Decimal("25.00"),
        is_paid=False,
        payment_method=None,
        version=1,
        created_at=now,
        updated_at=now,
        items=[],
    )
    data.update(overrides)
    return SimpleNamespace(**data)


def fake_delivery(**overrides):
    data = dict(
        id=uuid4(),
        order_id=uuid4(),
        driver_id=uuid4(),
        status=DeliveryStatus.ASSIGNED,
        delivery_address="12 Main St",
        delivery_notes=None,
        dispatched_at=datetime.now(timezone.utc),
        delivered_at=None,
        version=1,
    )
    data.update(overrides)
    return SimpleNamespace(**data)


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def orders():
    service = mock_service("create", "get", "delete", "mark_paid")
    app.dependency_overrides[get_order_manager] = lambda: service
    return service


@pytest.fixture
def coordinator():
    service = mock_service("transition_order")
    app.dependency_overrides[get_coordinator] = lambda: service
    return service


@pytest.fixture
def catalog():
    service = mock_service("create_category", "create_product", "list_products", "get_product", "delete_product")
    app.dependency_overrides[get_catalog] = lambda: service
    return service


@pytest.fixture
def directory():
    service = mock_service("create_staff")
    app.dependency_overrides[get_directory] = lambda: service
    return service


@pytest.fixture
def deliveries():
    service = mock_service("assign", "cancel")
    app.dependency_overrides[get_delivery_manager] = lambda: service
    return service


class TestOrderRoutes:
    def test_create_order_success(self, client, orders):
        """Test order creation returns 201 with the order header"""
        orders.create.return_value = fake_order()
        product_id = uuid4()

        response = client.post(
            "/api/v1/orders/",
            json={"order_type": "DELIVERY", "items": [{"product_id": str(product_id), "quantity": 2}]},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["status"] == "PENDING"
        assert body["data"]["total_price"] == "25.00"
        assert orders.create.await_args.kwargs["items"] == [{"product_id": product_id, "quantity": 2}]

    def test_create_order_empty_items(self, client, orders):
        """Test validation for empty items"""
        response = client.post("/api/v1/orders/", json={"order_type": "PICKUP", "items": []})
        assert response.status_code == 400
        orders.create.assert_not_awaited()

    def test_create_order_bad_quantity(self, client, orders):
        """Test non-positive quantities are rejected before reaching the service"""
        response = client.post(
            "/api/v1/orders/",
            json={"order_type": "PICKUP", "items": [{"product_id": str(uuid4()), "quantity": 0}]},
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "validation_error"

    def test_get_order_success(self, client, orders):
        """Test order retrieval"""
        order = fake_order()
        orders.get.return_value = order

        response = client.get(f"/api/v1/orders/{order.id}")
        assert response.status_code == 200
        assert response.json()["data"]["id"] == str(order.id)
        assert response.json()["data"]["items"] == []

    def test_get_order_not_found(self, client, orders):
        """Test missing order maps to 404"""
        order_id = uuid4()
        orders.get.side_effect = NotFound("Order", order_id)

        response = client.get(f"/api/v1/orders/{order_id}")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "not_found"

    def test_invalid_transition_returns_409(self, client, coordinator):
        """Test rejected transitions carry the current and requested status"""
        order_id = uuid4()
        coordinator.transition_order.side_effect = InvalidTransition(
            "order", order_id, OrderStatus.PENDING, OrderStatus.COMPLETED
        )

        response = client.patch(f"/api/v1/orders/{order_id}/status", json={"status": "COMPLETED", "expected_version": 1})

        assert response.status_code == 409
        error = response.json()["error"]
        assert error["code"] == "invalid_transition"
        assert error["details"]["current"] == "PENDING"
        assert error["details"]["requested"] == "COMPLETED"

    def test_status_update_passes_expected_version(self, client, coordinator):
        order = fake_order(status=OrderStatus.CONFIRMED, version=2)
        coordinator.transition_order.return_value = order

        response = client.patch(
            f"/api/v1/orders/{order.id}/status",
            json={"status": "CONFIRMED", "expected_version": 1},
        )

        assert response.status_code == 200
        assert response.json()["data"]["version"] == 2
        coordinator.transition_order.assert_awaited_once_with(order.id, OrderStatus.CONFIRMED, 1)

    def test_unknown_status_value(self, client, coordinator):
        response = client.patch(f"/api/v1/orders/{uuid4()}/status", json={"status": "SHIPPED", "expected_version": 1})
        assert response.status_code == 422
        coordinator.transition_order.assert_not_awaited()

    def test_status_update_requires_version(self, client, coordinator):
        """Test a status change without the version the client read is rejected"""
        response = client.patch(f"/api/v1/orders/{uuid4()}/status", json={"status": "CONFIRMED"})
        assert response.status_code == 422
        coordinator.transition_order.assert_not_awaited()

    def test_delete_confirmed_order(self, client, orders):
        order_id = uuid4()
        orders.delete.side_effect = InvalidState(
            "order", order_id, OrderStatus.CONFIRMED, "Cannot delete order with status: CONFIRMED"
        )

        response = client.delete(f"/api/v1/orders/{order_id}")
        assert response.status_code == 409
        assert response.json()["error"]["details"]["current"] == "CONFIRMED"

    def test_mark_paid(self, client, orders):
        order = fake_order(is_paid=True, payment_method="CARD")
        orders.mark_paid.return_value = order

        response = client.post(f"/api/v1/orders/{order.id}/mark-paid?payment_method=CARD")
        assert response.status_code == 200
        assert response.json()["data"]["is_paid"] is True


class TestDeliveryRoutes:
    def test_assign_delivery(self, client, deliveries):
        delivery = fake_delivery()
        deliveries.assign.return_value = delivery

        response = client.post(
            "/api/v1/deliveries/assign",
            json={
                "order_id": str(delivery.order_id),
                "driver_id": str(delivery.driver_id),
                "delivery_address": "12 Main St",
            },
        )

        assert response.status_code == 201
        assert response.json()["data"]["status"] == "ASSIGNED"
        deliveries.assign.assert_awaited_once_with(delivery.order_id, delivery.driver_id, "12 Main St", None)

    def test_assign_to_order_not_ready(self, client, deliveries):
        order_id = uuid4()
        deliveries.assign.side_effect = InvalidState(
            "order", order_id, OrderStatus.PENDING, "Order must be READY_FOR_DELIVERY to assign delivery."
        )

        response = client.post(
            "/api/v1/deliveries/assign",
            json={"order_id": str(order_id), "driver_id": str(uuid4()), "delivery_address": "12 Main St"},
        )
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "invalid_state"


class TestCatalogAndStaffRoutes:
    def test_list_products(self, client, catalog):
        category_id = uuid4()
        catalog.list_products.return_value = [
            SimpleNamespace(
                id=uuid4(), name="Lemonade", price=Decimal("2.50"),
                category_id=category_id, description=None, is_available=True,
            )
        ]

        response = client.get(f"/api/v1/catalog/products?available=true&category_id={category_id}")

        assert response.status_code == 200
        assert response.json()["data"][0]["price"] == "2.50"
        catalog.list_products.assert_awaited_once_with(available=True, category_id=category_id)

    def test_duplicate_category_returns_409(self, client, catalog):
        """Test a taken name is a conflict, not a server error"""
        catalog.create_category.side_effect = AlreadyExists("Category", "name", "Mains")

        response = client.post("/api/v1/catalog/categories", json={"name": "Mains"})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "already_exists"

    def test_unique_violation_from_database_returns_409(self, client, catalog):
        """Test a unique constraint hit by a concurrent insert maps to 409"""
        catalog.create_product.side_effect = IntegrityError("UNIQUE constraint failed: products.name")

        response = client.post("/api/v1/catalog/products", json={"name": "Lemonade", "price": "2.50"})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "already_exists"

    def test_duplicate_username_returns_409(self, client, directory):
        directory.create_staff.side_effect = AlreadyExists("User", "username", "driver1")

        response = client.post(
            "/api/v1/staff/",
            json={"username": "driver1", "full_name": "Dana Driver", "role": "DELIVERY_STAFF"},
        )
        assert response.status_code == 409

    def test_delete_unknown_product(self, client, catalog):
        product_id = uuid4()
        catalog.delete_product.side_effect = NotFound("Product", product_id)

        response = client.delete(f"/api/v1/catalog/products/{product_id}")
        assert response.status_code == 404


class TestNotificationSocket:
    def test_unknown_topic_is_refused(self, client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/api/v1/notifications/ws?topics=payments") as ws:
                ws.receive_text()
        assert exc_info.value.code == 1008
