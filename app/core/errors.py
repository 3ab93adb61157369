"""
Domain error taxonomy for the order/delivery lifecycle.

Every error is an expected, client-facing condition: the exception handler in
``app.core.exception_handlers`` renders it as a 4xx response with ``details``
describing the offending entity and states.
"""
from typing import Any, Dict, Optional


class OrderFlowError(Exception):
    status_code = 400
    code = "order_flow_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class NotFound(OrderFlowError):
    status_code = 404
    code = "not_found"

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            f"{entity} not found with id: {entity_id}",
            {"entity": entity, "entity_id": str(entity_id)},
        )


class InvalidTransition(OrderFlowError):
    """Requested status is not reachable from the current one."""
    status_code = 409
    code = "invalid_transition"

    def __init__(self, entity: str, entity_id: Any, current: Any, requested: Any, reason: Optional[str] = None):
        self.entity = entity
        self.entity_id = entity_id
        self.current = current
        self.requested = requested
        message = reason or f"Invalid status transition from {_name(current)} to {_name(requested)}"
        super().__init__(
            message,
            {
                "entity": entity,
                "entity_id": str(entity_id),
                "current": _name(current),
                "requested": _name(requested),
            },
        )


class InvalidState(OrderFlowError):
    """Operation preconditions on the current state are not met."""
    status_code = 409
    code = "invalid_state"

    def __init__(self, entity: str, entity_id: Any, current: Any, message: str):
        self.entity = entity
        self.entity_id = entity_id
        self.current = current
        super().__init__(
            message,
            {"entity": entity, "entity_id": str(entity_id), "current": _name(current)},
        )


class InvalidDriver(OrderFlowError):
    status_code = 422
    code = "invalid_driver"

    def __init__(self, driver_id: Any, message: str):
        self.driver_id = driver_id
        super().__init__(message, {"entity": "driver", "entity_id": str(driver_id)})


class AlreadyAssigned(OrderFlowError):
    status_code = 409
    code = "already_assigned"

    def __init__(self, order_id: Any, delivery_id: Any):
        self.order_id = order_id
        self.delivery_id = delivery_id
        super().__init__(
            f"Delivery already exists for order id: {order_id}",
            {"entity": "order", "entity_id": str(order_id), "delivery_id": str(delivery_id)},
        )


class AlreadyExists(OrderFlowError):
    """A unique name (category, product, username) is already taken."""
    status_code = 409
    code = "already_exists"

    def __init__(self, entity: str, field: str, value: Any):
        self.entity = entity
        self.field = field
        self.value = value
        super().__init__(
            f"{entity} with {field} '{value}' already exists",
            {"entity": entity, "field": field, "value": str(value)},
        )


class ProductUnavailable(OrderFlowError):
    status_code = 422
    code = "product_unavailable"

    def __init__(self, product_id: Any, name: str):
        self.product_id = product_id
        super().__init__(
            f"Product '{name}' is not available",
            {"entity": "product", "entity_id": str(product_id)},
        )


class Conflict(OrderFlowError):
    """Lost a concurrent-modification race; the client should re-read and retry."""
    status_code = 409
    code = "conflict"

    def __init__(self, entity: str, entity_id: Any, expected_version: Any = None, actual_version: Any = None):
        self.entity = entity
        self.entity_id = entity_id
        details = {"entity": entity, "entity_id": str(entity_id)}
        if expected_version is not None:
            details["expected_version"] = expected_version
        if actual_version is not None:
            details["actual_version"] = actual_version
        super().__init__(f"{entity} {entity_id} was modified concurrently, retry the request", details)


def _name(state: Any) -> Optional[str]:
    if state is None:
        return None
    return getattr(state, "value", str(state))
