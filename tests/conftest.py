import pytest
import pytest_asyncio
from decimal import Decimal
from tortoise import Tortoise

from app.core.db import MODELS_MODULES
from app.core.dependencies import build_container
from app.models.catalog import Product
from app.models.order import OrderStatus, OrderType
from app.models.staff import StaffRole, StaffUser
from app.testing.testing_mocks import RecordingTransport

# Path from PENDING to each status the tests start from
PATH_TO = {
    OrderStatus.CONFIRMED: [OrderStatus.CONFIRMED],
    OrderStatus.PREPARING: [OrderStatus.CONFIRMED, OrderStatus.PREPARING],
    OrderStatus.READY_FOR_DELIVERY: [OrderStatus.CONFIRMED, OrderStatus.PREPARING, OrderStatus.READY_FOR_DELIVERY],
    OrderStatus.READY_FOR_PICKUP: [OrderStatus.CONFIRMED, OrderStatus.PREPARING, OrderStatus.READY_FOR_PICKUP],
}


@pytest_asyncio.fixture
async def db():
    """Fresh in-memory SQLite database per test."""
    await Tortoise.init(db_url="sqlite://:memory:", modules={"models": MODELS_MODULES})
    await Tortoise.generate_schemas()
    yield
    await Tortoise.close_connections()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest_asyncio.fixture
async def services(db, transport):
    return build_container(transport)


@pytest_asyncio.fixture
async def make_product(db):
    counter = {"n": 0}

    async def _make(price="10.00", available=True, name=None):
        counter["n"] += 1
        return await Product.create(
            name=name or f"Product {counter['n']}",
            price=Decimal(price),
            is_available=available,
        )

    return _make


@pytest_asyncio.fixture
async def make_staff(db):
    counter = {"n": 0}

    async def _make(role=StaffRole.DELIVERY_STAFF, enabled=True):
        counter["n"] += 1
        return await StaffUser.create(
            username=f"staff{counter['n']}",
            full_name=f"Staff Member {counter['n']}",
            role=role,
            enabled=enabled,
        )

    return _make


@pytest_asyncio.fixture
async def make_order(services, make_product, transport):
    """Creates an order and walks it to the requested status; clears recorded notifications."""

    async def _make(status=OrderStatus.PENDING, order_type=OrderType.DELIVERY):
        product = await make_product()
        order = await services.orders.create(order_type, [{"product_id": product.id, "quantity": 1}])
        for step in PATH_TO.get(status, []):
            order = await services.orders.transition(order.id, step)
        await services.publisher.drain()
        transport.clear()
        return order

    return _make
