"""Storage implementations for billing records.

This module provides two storage backends:
- SQLAlchemy: persistent storage (PostgreSQL, SQLite, MySQL)
- In-Memory: testing and development

Example:
    ```python
    from billing_engine.core.config import BillingConfig
    from billing_engine.storage import create_store

    store = create_store(BillingConfig(
        storage_backend="sqlalchemy",
        database_url="sqlite+aiosqlite:///./billing.db",
    ))
    await store.initialize()

    async with store.transaction() as tx:
        product = await tx.get_product("printer-epson")
    ```
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from billing_engine.core.types import StorageBackend
from billing_engine.storage.base import BillingStore, StoreTransaction
from billing_engine.storage.memory import InMemoryBillingStore
from billing_engine.storage.sql import SQLAlchemyBillingStore

if TYPE_CHECKING:
    from billing_engine.core.config import BillingConfig


def create_store(config: BillingConfig) -> BillingStore:
    """Build the backend selected by ``config.storage_backend``."""
    if config.storage_backend == StorageBackend.SQLALCHEMY:
        return SQLAlchemyBillingStore(
            database_url=str(config.database_url),
            pool_size=config.database_pool_size,
            max_overflow=config.database_max_overflow,
            pool_recycle=config.database_pool_recycle,
            echo=config.database_echo,
        )
    return InMemoryBillingStore()


__all__ = [
    "BillingStore",
    "InMemoryBillingStore",
    "SQLAlchemyBillingStore",
    "StoreTransaction",
    "create_store",
]
