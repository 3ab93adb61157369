import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, status
from app.core.db import init_db, close_db
from app.core.config import LOG_LEVEL, NOTIFICATION_DRAIN_TIMEOUT, PROJECT_NAME, VERSION
from app.core.dependencies import build_container
from app.core.exception_handlers import setup_exception_handlers
from app.events.websocket_hub import WebSocketHub
from app.api.v1.orders import router as orders_router
from app.api.v1.deliveries import router as deliveries_router
from app.api.v1.catalog import router as catalog_router
from app.api.v1.staff import router as staff_router
from app.api.v1.notifications import router as notifications_router

logging.basicConfig(level=LOG_LEVEL, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handles startup and shutdown events."""
    log.info(f"Starting {PROJECT_NAME} v{VERSION}...")
    await init_db()  # Connect to DB and generate schemas
    yield
    # Let queued notifications go out before the loop stops
    await app.state.services.publisher.drain(timeout=NOTIFICATION_DRAIN_TIMEOUT)
    await close_db()
    log.info(f"{PROJECT_NAME} stopped.")


app = FastAPI(
    title=PROJECT_NAME,
    version=VERSION,
    lifespan=lifespan,
    # Configure API documentation and paths
    docs_url="/docs",
    redoc_url="/redoc"
)

# Services are built once; the hub is the notification transport
app.state.hub = WebSocketHub()
app.state.services = build_container(app.state.hub)

# Include routers for modular API structure
app.include_router(orders_router, prefix="/api/v1/orders", tags=["Order Management"])
app.include_router(deliveries_router, prefix="/api/v1/deliveries", tags=["Delivery Management"])
app.include_router(catalog_router, prefix="/api/v1/catalog", tags=["Catalog"])
app.include_router(staff_router, prefix="/api/v1/staff", tags=["Staff Directory"])
app.include_router(notifications_router, prefix="/api/v1/notifications", tags=["Notifications"])


setup_exception_handlers(app)


@app.get("/health", status_code=status.HTTP_200_OK)
async def health_check():
    """Simple health check endpoint."""
    return {"status": "ok", "app_name": PROJECT_NAME}
