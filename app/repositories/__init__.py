"""
Storage backends for customers, purchase history and settings.

This package provides:
- SQLite*Repository: persistent relational backend (aiosqlite)
- Memory*Repository: in-process backend for development and tests
- create_storage: builds the backend named by configuration
"""

import logging
from functools import partial

from app.core.config import Settings
from database.connection import init_db

from .base import Storage
from .customer import SQLiteCustomerRepository
from .history import SQLitePurchaseHistoryRepository
from .memory import (
    MemoryCustomerRepository,
    MemoryDatabase,
    MemoryPurchaseHistoryRepository,
    MemorySettingsRepository,
)
from .settings import SQLiteSettingsRepository

logger = logging.getLogger(__name__)

STORAGE_BACKENDS = ("sqlite", "memory")


def create_storage(settings: Settings) -> Storage:
    """Create the storage backend selected by `settings.storage_backend`."""
    backend = settings.storage_backend.lower()

    if backend == "sqlite":
        path, timeout = settings.database_path, settings.database_timeout
        logger.info(f"Using SQLite storage at {path}")
        return Storage(
            backend=backend,
            customers=SQLiteCustomerRepository(path, timeout),
            history=SQLitePurchaseHistoryRepository(path, timeout),
            settings=SQLiteSettingsRepository(path, timeout),
            initializer=partial(init_db, path, timeout),
        )

    if backend == "memory":
        logger.info("Using in-memory storage")
        db = MemoryDatabase()
        return Storage(
            backend=backend,
            customers=MemoryCustomerRepository(db),
            history=MemoryPurchaseHistoryRepository(db),
            settings=MemorySettingsRepository(db),
        )

    raise ValueError(
        f"Unknown storage backend '{settings.storage_backend}'. "
        f"Expected one of: {', '.join(STORAGE_BACKENDS)}"
    )


__all__ = [
    "Storage",
    "create_storage",
    "SQLiteCustomerRepository",
    "SQLitePurchaseHistoryRepository",
    "SQLiteSettingsRepository",
    "MemoryDatabase",
    "MemoryCustomerRepository",
    "MemoryPurchaseHistoryRepository",
    "MemorySettingsRepository",
]
