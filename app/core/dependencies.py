"""
Service wiring. One container is built per application and stored on
``app.state``; routers receive services through FastAPI dependencies, which
tests replace with ``app.dependency_overrides``.
"""
from dataclasses import dataclass

from fastapi import Request

from app.events.notifications import NotificationPublisher, NotificationTransport
from app.events.websocket_hub import WebSocketHub
from app.services.catalog_service import CatalogService
from app.services.coordinator import OrderDeliveryCoordinator
from app.services.delivery_service import DeliveryLifecycleManager
from app.services.directory import StaffDirectory
from app.services.order_service import OrderLifecycleManager


@dataclass
class ServiceContainer:
    publisher: NotificationPublisher
    catalog: CatalogService
    directory: StaffDirectory
    orders: OrderLifecycleManager
    coordinator: OrderDeliveryCoordinator
    deliveries: DeliveryLifecycleManager


def build_container(transport: NotificationTransport) -> ServiceContainer:
    publisher = NotificationPublisher(transport)
    catalog = CatalogService()
    directory = StaffDirectory()
    orders = OrderLifecycleManager(publisher, catalog)
    coordinator = OrderDeliveryCoordinator(orders, publisher)
    deliveries = DeliveryLifecycleManager(coordinator, directory)
    return ServiceContainer(
        publisher=publisher,
        catalog=catalog,
        directory=directory,
        orders=orders,
        coordinator=coordinator,
        deliveries=deliveries,
    )


def get_order_manager(request: Request) -> OrderLifecycleManager:
    return request.app.state.services.orders


def get_coordinator(request: Request) -> OrderDeliveryCoordinator:
    return request.app.state.services.coordinator


def get_delivery_manager(request: Request) -> DeliveryLifecycleManager:
    return request.app.state.services.deliveries


def get_catalog(request: Request) -> CatalogService:
    return request.app.state.services.catalog


def get_directory(request: Request) -> StaffDirectory:
    return request.app.state.services.directory


def get_hub(request: Request) -> WebSocketHub:
    return request.app.state.hub
