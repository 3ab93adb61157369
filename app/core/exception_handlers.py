import logging
import uuid
from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from tortoise.exceptions import IntegrityError

from app.core.errors import OrderFlowError

log = logging.getLogger(__name__)


# Generate a clean request id for every response
def _rid():
    """Generates a unique request ID for tracing."""
    return uuid.uuid4().hex


# ----------- Exception Handlers (called by FastAPI) -----------

def order_flow_exception_handler(request: Request, exc: OrderFlowError):
    """Handles expected lifecycle errors (invalid transitions, conflicts, missing entities)."""
    log.info(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    body = {
        "success": False,
        "error": {
            "code": exc.code,
            "message": exc.message,
            "details": exc.details,
        },
        "request_id": _rid(),
    }
    return JSONResponse(status_code=exc.status_code, content=body)


def integrity_exception_handler(request: Request, exc: IntegrityError):
    """Handles unique and foreign key violations the services did not catch first (409 Conflict)."""
    log.warning(f"Integrity error on {request.method} {request.url.path}: {exc}")
    body = {
        "success": False,
        "error": {
            "code": "already_exists",
            "message": "A record with this information already exists",
        },
        "request_id": _rid(),
    }
    return JSONResponse(status_code=409, content=body)


def http_exception_handler(request: Request, exc: HTTPException):
    """Handles exceptions raised by HTTPException (e.g., 404, 400)."""
    body = {
        "success": False,
        "error": {
            "code": "http_error",
            "message": exc.detail,
        },
        "request_id": _rid(),
    }
    return JSONResponse(status_code=exc.status_code, content=body)


def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handles Pydantic validation errors (422 Unprocessable Entity)."""
    body = {
        "success": False,
        "error": {
            "code": "validation_error",
            "message": "Invalid input data",
            "details": jsonable_errors(exc),
        },
        "request_id": _rid(),
    }
    return JSONResponse(status_code=422, content=body)


def generic_exception_handler(request: Request, exc: Exception):
    """Handles all unhandled exceptions (500 Internal Server Error)."""
    log.error(f"Unhandled exception on path: {request.url.path}", exc_info=exc)

    body = {
        "success": False,
        "error": {
            "code": "server_error",
            "message": "Internal Server Error",
        },
        "request_id": _rid(),
    }
    return JSONResponse(status_code=500, content=body)


def jsonable_errors(exc: RequestValidationError):
    # Pydantic may put exception objects in "ctx"; keep only printable parts
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]


# ----------- Registration Function -----------

def setup_exception_handlers(app: FastAPI):
    """Registers all custom exception handlers with the FastAPI application."""

    # Register handlers
    app.add_exception_handler(OrderFlowError, order_flow_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    return app
