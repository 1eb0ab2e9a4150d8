# duka/store/__init__.py
from .base import LEGACY_ORDER_COLUMNS, ORDER_COLUMNS, KeyedLocks, OrderStore
from .memory import MemoryOrderStore
from .sql import SqlOrderStore, classify_db_error


def build_store(app) -> OrderStore:
    """Pick the backend once: a configured database wins, else process memory."""
    if app.config.get("SQLALCHEMY_DATABASE_URI"):
        app.logger.info("Order store: database (%s)", app.config["SQLALCHEMY_DATABASE_URI"].split(":", 1)[0])
        return SqlOrderStore()
    app.logger.warning("DATABASE_URL is not set; orders are kept in memory and lost on restart")
    return MemoryOrderStore()


__all__ = [
    "LEGACY_ORDER_COLUMNS",
    "ORDER_COLUMNS",
    "KeyedLocks",
    "OrderStore",
    "MemoryOrderStore",
    "SqlOrderStore",
    "classify_db_error",
    "build_store",
]
