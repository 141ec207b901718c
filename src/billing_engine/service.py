"""Billing service — the orchestrator callers talk to.

Design decisions
----------------
* **One transaction per call.**  Every public coroutine opens exactly one
  store transaction and builds the ledger, line item manager and bill
  aggregate over it.  If anything raises, the transaction rolls back, which
  undoes any reservation already taken.  No half-applied operation is ever
  visible to other callers.

* **No I/O in ``__init__``.**  Like the FastAPI integration it serves, the
  service is constructed cheaply and does its I/O in :meth:`initialize`
  (create tables, seed demo data) and :meth:`shutdown` (dispose pools).

* **create_lifespan** is the one-call FastAPI integration::

      app = FastAPI(lifespan=BillingService.create_lifespan(config))
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from billing_engine.bills import BillAggregate
from billing_engine.core.config import BillingConfig
from billing_engine.core.exceptions import (
    BillingError,
    BillingValidationError,
    CustomerNotFoundError,
    ProductNotFoundError,
)
from billing_engine.ledger import InventoryLedger
from billing_engine.line_items import LineItemManager
from billing_engine.utils.validation import (
    require_money,
    validate_email,
    validate_product_id,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from datetime import datetime

    from fastapi import FastAPI
    from starlette.types import Lifespan

    from billing_engine.core.types import (
        Bill,
        BillDetails,
        Customer,
        LineItem,
        Product,
    )
    from billing_engine.storage.base import BillingStore, StoreTransaction

logger = logging.getLogger(__name__)

DEMO_CUSTOMERS: list[tuple[str, str]] = [
    ("Hassan", "hassan@gmail.com"),
    ("Fadwa", "fadwa@gmail.com"),
    ("Marwan", "marwan@gmail.com"),
]

DEMO_PRODUCTS: list[tuple[str, Decimal, int]] = [
    ("Computer Desk Top HP", Decimal("7500"), 12),
    ("Printer Epson", Decimal("1000"), 30),
    ("MacBook Pro Lap Top", Decimal("1800"), 4),
]


@dataclass(frozen=True)
class UnitOfWork:
    """The domain components bound to one store transaction."""

    tx: StoreTransaction
    ledger: InventoryLedger
    items: LineItemManager
    bills: BillAggregate

    @classmethod
    def bind(cls, tx: StoreTransaction) -> UnitOfWork:
        ledger = InventoryLedger(tx)
        items = LineItemManager(tx, ledger)
        return cls(tx=tx, ledger=ledger, items=items, bills=BillAggregate(tx, items))


class BillingService:
    """Orchestrator for bills, line items and inventory.

    Lifecycle
    ---------
    1. **Construct**: stores config and an optional store override; no I/O.
    2. **initialize()**: builds the store, creates tables, seeds demo data.
    3. **shutdown()**: closes the store.

    Example:
        ```python
        async with BillingService(BillingConfig()) as service:
            customer = await service.create_customer("Hassan", "hassan@gmail.com")
            product = await service.create_product("Printer Epson", Decimal("1000"), 30)
            bill = await service.create_bill(customer.id)
            item = await service.add_item(bill.id, product.id, 3)
            await service.update_item_quantity(item.id, 5)
            total = await service.bill_total(bill.id)
        ```

    Parameters
    ----------
    config:
        Validated :class:`~billing_engine.core.config.BillingConfig`.
        Defaults to one read from the environment.
    store:
        Override the store built from ``config.storage_backend``.
    """

    def __init__(
        self,
        config: BillingConfig | None = None,
        *,
        store: BillingStore | None = None,
    ) -> None:
        self.config = config or BillingConfig()
        self._custom_store = store
        self._store: BillingStore | None = None
        self._initialized = False
        logger.info("BillingService created backend=%s", self.config.storage_backend.value)

    @property
    def store(self) -> BillingStore:
        if self._store is None:
            raise RuntimeError("BillingService is not initialised; call initialize() first")
        return self._store

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Build and prepare the store.  Subsequent calls are no-ops."""
        if self._initialized:
            return

        if self._custom_store is not None:
            self._store = self._custom_store
        else:
            from billing_engine.storage import create_store
            self._store = create_store(self.config)

        await self._store.initialize()
        if self.config.seed_demo_data:
            await self._seed_demo_data()

        self._initialized = True
        logger.info("BillingService initialised")

    async def shutdown(self) -> None:
        """Release store resources (connection pools)."""
        if not self._initialized:
            return
        await self.store.close()
        self._initialized = False
        logger.info("BillingService shutdown complete")

    async def __aenter__(self) -> BillingService:
        await self.initialize()
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.shutdown()

    @staticmethod
    def create_lifespan(
        config: BillingConfig | None = None,
        *,
        store: BillingStore | None = None,
    ) -> Lifespan[FastAPI]:
        """Build a FastAPI ``lifespan`` that owns a :class:`BillingService`.

        The service is stored on ``app.state.billing_service`` where the
        :func:`~billing_engine.api.dependencies.get_billing_service`
        dependency finds it.
        """

        @asynccontextmanager
        async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
            service = BillingService(config, store=store)
            app.state.billing_service = service
            await service.initialize()
            try:
                yield
            finally:
                await service.shutdown()

        return _lifespan

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[UnitOfWork]:
        """Open one store transaction and bind the domain components to it."""
        try:
            async with self.store.transaction() as tx:
                yield UnitOfWork.bind(tx)
        except BillingError as exc:
            logger.debug("Transaction rolled back: %r", exc)
            raise

    #########
    # Bills #
    #########

    async def create_bill(
        self, customer_id: int, billing_date: datetime | None = None
    ) -> Bill:
        async with self.unit_of_work() as uow:
            return await uow.bills.create(customer_id, billing_date)

    async def update_bill(
        self,
        bill_id: int,
        customer_id: int | None = None,
        billing_date: datetime | None = None,
    ) -> Bill:
        async with self.unit_of_work() as uow:
            return await uow.bills.update(bill_id, customer_id, billing_date)

    async def delete_bill(self, bill_id: int) -> None:
        """Delete a bill, releasing every item's stock in the same transaction."""
        async with self.unit_of_work() as uow:
            await uow.bills.delete(bill_id)

    async def get_bill(self, bill_id: int) -> Bill:
        async with self.unit_of_work() as uow:
            return await uow.bills.get(bill_id)

    async def list_bills(self) -> list[Bill]:
        async with self.unit_of_work() as uow:
            return await uow.bills.list()

    async def get_bill_details(self, bill_id: int) -> BillDetails:
        async with self.unit_of_work() as uow:
            return await uow.bills.details(bill_id)

    async def bill_total(self, bill_id: int) -> Decimal:
        async with self.unit_of_work() as uow:
            return await uow.bills.total(bill_id)

    ##############
    # Line items #
    ##############

    async def add_item(self, bill_id: int, product_id: str, quantity: int) -> LineItem:
        async with self.unit_of_work() as uow:
            return await uow.items.add_item(bill_id, product_id, quantity)

    async def update_item_quantity(self, item_id: int, quantity: int) -> LineItem:
        async with self.unit_of_work() as uow:
            return await uow.items.update_quantity(item_id, quantity)

    async def remove_item(self, item_id: int) -> None:
        async with self.unit_of_work() as uow:
            await uow.items.remove_item(item_id)

    async def get_item(self, item_id: int) -> LineItem:
        async with self.unit_of_work() as uow:
            return await uow.items.get_item(item_id)

    async def list_items(self, bill_id: int) -> list[LineItem]:
        async with self.unit_of_work() as uow:
            return await uow.items.list_items(bill_id)

    #############
    # Inventory #
    #############

    async def check_availability(self, product_id: str, quantity: int) -> bool:
        async with self.unit_of_work() as uow:
            return await uow.ledger.check_availability(product_id, quantity)

    async def restock_product(self, product_id: str, delta: int) -> Product:
        """Administrative stock change; refused if stock would drop below zero."""
        async with self.unit_of_work() as uow:
            return await uow.ledger.restock(product_id, delta)

    ########################################
    # Customer directory & product catalog #
    ########################################

    async def create_customer(self, name: str, email: str) -> Customer:
        if not name or not name.strip():
            raise BillingValidationError("name", "must not be empty")
        if not validate_email(email):
            raise BillingValidationError("email", "is not a valid address", {"email": email})
        async with self.unit_of_work() as uow:
            customer = await uow.tx.add_customer(name.strip(), email)
        logger.info("Created customer %s", customer.id)
        return customer

    async def get_customer(self, customer_id: int) -> Customer:
        async with self.unit_of_work() as uow:
            customer = await uow.tx.get_customer(customer_id)
        if customer is None:
            raise CustomerNotFoundError(identifier=customer_id)
        return customer

    async def list_customers(self) -> list[Customer]:
        async with self.unit_of_work() as uow:
            return await uow.tx.list_customers()

    async def create_product(
        self,
        name: str,
        unit_price: Decimal,
        quantity_in_stock: int = 0,
        product_id: str | None = None,
    ) -> Product:
        """Add a product to the catalog.  A UUID4 id is generated when omitted."""
        if not name or not name.strip():
            raise BillingValidationError("name", "must not be empty")
        unit_price = require_money(unit_price)
        if quantity_in_stock < 0:
            raise BillingValidationError("quantity_in_stock", "must not be negative")
        if product_id is not None and not validate_product_id(product_id):
            raise BillingValidationError("product_id", "is not a valid identifier")
        try:
            async with self.unit_of_work() as uow:
                product = await uow.tx.add_product(
                    name.strip(), unit_price, quantity_in_stock, product_id
                )
        except ValueError as exc:
            raise BillingValidationError("product_id", str(exc)) from exc
        logger.info("Created product %s (%s)", product.id, product.name)
        return product

    async def get_product(self, product_id: str) -> Product:
        async with self.unit_of_work() as uow:
            product = await uow.tx.get_product(product_id)
        if product is None:
            raise ProductNotFoundError(identifier=product_id)
        return product

    async def list_products(self) -> list[Product]:
        async with self.unit_of_work() as uow:
            return await uow.tx.list_products()

    async def update_product(
        self,
        product_id: str,
        name: str | None = None,
        unit_price: Decimal | None = None,
    ) -> Product:
        """Change a product's name and/or price.

        Stock is never changed here (see :meth:`restock_product`), and
        existing line items keep the price they were created with.
        """
        if name is not None and not name.strip():
            raise BillingValidationError("name", "must not be empty")
        if unit_price is not None:
            unit_price = require_money(unit_price)
        async with self.unit_of_work() as uow:
            product = await uow.tx.update_product_details(
                product_id,
                name=name.strip() if name is not None else None,
                unit_price=unit_price,
            )
        if product is None:
            raise ProductNotFoundError(identifier=product_id)
        logger.info("Updated product %s", product_id)
        return product

    ##########
    # Health #
    ##########

    async def health_check(self) -> dict[str, Any]:
        """Return health information for the store."""
        health: dict[str, Any] = {"status": "healthy", "components": {}}
        try:
            async with self.unit_of_work() as uow:
                products = await uow.tx.list_products()
                bills = await uow.tx.list_bills()
            health["components"]["store"] = {
                "status": "healthy",
                "backend": self.config.storage_backend.value,
                "product_count": len(products),
                "bill_count": len(bills),
            }
        except Exception as exc:
            logger.error("Health check failed: %s", exc, exc_info=True)
            health["status"] = "unhealthy"
            health["components"]["store"] = {
                "status": "unhealthy",
                "error": str(exc),
            }
        return health

    async def _seed_demo_data(self) -> None:
        """Insert demo customers, products and one bill per customer.

        Skipped when any customer already exists.  Bill lines go through the
        ledger like any other, so the seeded stock stays consistent.
        """
        async with self.unit_of_work() as uow:
            if await uow.tx.list_customers():
                logger.info("Store already populated; skipping demo data")
                return
            customers = [await uow.tx.add_customer(n, e) for n, e in DEMO_CUSTOMERS]
            products = [
                await uow.tx.add_product(name, price, stock)
                for name, price, stock in DEMO_PRODUCTS
            ]
            for customer in customers:
                bill = await uow.bills.create(customer.id)
                for product in products:
                    await uow.items.add_item(bill.id, product.id, 1)
        logger.info(
            "Seeded demo data: %d customers, %d products", len(customers), len(products)
        )


__all__ = ["BillingService", "UnitOfWork"]
