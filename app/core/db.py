import logging
from logging import INFO
from typing import Any

from tortoise import Tortoise, timezone
from tortoise.models import Model

from app.core.config import DB_URL
from app.core.errors import Conflict

# Set logging level for Tortoise ORM
logging.getLogger('tortoise').setLevel(INFO)
log = logging.getLogger(__name__)

# Define all models modules for the ORM
MODELS_MODULES = [
    "app.models.catalog",
    "app.models.staff",
    "app.models.order",
    "app.models.delivery",
]


async def init_db(db_url: str = None):
    """Initializes the Tortoise ORM connection and generates schemas."""
    db_url = db_url or DB_URL
    try:
        await Tortoise.init(
            db_url=db_url,
            modules={"models": MODELS_MODULES},
        )
        # Generate the database schema (create tables)
        await Tortoise.generate_schemas()
        log.info("Database connection established and schemas generated.")
    except Exception as e:
        log.error(f"FATAL ERROR: Could not connect to database at {db_url}. Error: {e}")
        # Re-raise to prevent the application from starting without a database
        raise


async def close_db():
    """Closes all database connections."""
    await Tortoise.close_connections()
    log.info("Database connections closed.")


async def lock_row(model: Any, conn: Any, **filters) -> Any:
    """
    Re-reads a row inside the caller's transaction with SELECT ... FOR UPDATE.
    Backends without row locks (SQLite) ignore the lock and rely on the
    version check in ``save_versioned``.
    """
    return await model.filter(**filters).using_db(conn).select_for_update().first()


async def save_versioned(instance: Model, conn: Any, entity: str, **changes) -> None:
    """
    Compare-and-set write: applies ``changes`` only if the stored version still
    matches the one read into ``instance``. A lost race raises Conflict.
    """
    current_version = instance.version
    changes["version"] = current_version + 1
    changes["updated_at"] = timezone.now()

    updated = await type(instance).filter(
        pk=instance.pk, version=current_version
    ).using_db(conn).update(**changes)

    if not updated:
        raise Conflict(entity, instance.pk, expected_version=current_version)

    for field, value in changes.items():
        setattr(instance, field, value)
