"""Shared pytest fixtures for the billing-engine test suite.

Design philosophy
-----------------
- Everything runs without external services: the in-memory store and
  SQLite in-memory (``aiosqlite``) for the SQL store.
- Behavioural tests are parametrized over both stores through the
  ``store`` fixture, so both backends are held to the same rules.
- Scope is kept at "function" by default to guarantee full isolation.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

import pytest

from billing_engine.core.config import BillingConfig
from billing_engine.core.types import Bill, Customer, Product
from billing_engine.service import BillingService
from billing_engine.storage.base import BillingStore
from billing_engine.storage.memory import InMemoryBillingStore
from billing_engine.storage.sql import SQLAlchemyBillingStore

SQLITE_URL = "sqlite+aiosqlite:///:memory:"

# ---------------------------------------------------------------------------
# Storage fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
async def sqlite_store():
    """SQLite-backed billing store for integration tests."""
    store = SQLAlchemyBillingStore(database_url=SQLITE_URL, pool_size=1)
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture(params=["memory", "sqlite"])
async def store(request):
    """Each backend in turn."""
    if request.param == "memory":
        yield InMemoryBillingStore()
        return
    s = SQLAlchemyBillingStore(database_url=SQLITE_URL, pool_size=1)
    await s.initialize()
    yield s
    await s.close()


# ---------------------------------------------------------------------------
# Service fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def memory_config() -> BillingConfig:
    return BillingConfig(storage_backend="memory")


@pytest.fixture
async def service(store: BillingStore, memory_config: BillingConfig):
    """Initialised service over each backend."""
    async with BillingService(memory_config, store=store) as svc:
        yield svc


@dataclass
class Catalog:
    """A customer, a bill and a few products with known stock and prices."""

    customer: Customer
    bill: Bill
    desk: Product      # 10.00 x 10
    printer: Product   # 5.00 x 20
    laptop: Product    # 1800.00 x 5


@pytest.fixture
async def catalog(service: BillingService) -> Catalog:
    customer = await service.create_customer("Hassan", "hassan@gmail.com")
    bill = await service.create_bill(customer.id)
    desk = await service.create_product("Computer Desk Top HP", Decimal("10.00"), 10)
    printer = await service.create_product("Printer Epson", Decimal("5.00"), 20)
    laptop = await service.create_product("MacBook Pro Lap Top", Decimal("1800.00"), 5)
    return Catalog(customer=customer, bill=bill, desk=desk, printer=printer, laptop=laptop)


@pytest.fixture
def stock_of(service: BillingService):
    """Return a coroutine function reading a product's current stock."""

    async def _stock_of(product_id: str) -> int:
        return (await service.get_product(product_id)).quantity_in_stock

    return _stock_of
