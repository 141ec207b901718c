"""Abstract storage interface for billing records.

A :class:`BillingStore` hands out :class:`StoreTransaction` objects through
:meth:`BillingStore.transaction`.  Everything done through one transaction
is committed together when the ``async with`` block exits normally and
discarded when it exits with an exception.  The billing service opens
exactly one transaction per public operation, which is what makes a failed
operation leave no dangling reservation or orphan line item behind.

Two primitives carry the concurrency guarantees:

* :meth:`StoreTransaction.decrement_stock` is a single check-and-decrement
  that never lets stock go below zero, atomic per product.
* :meth:`StoreTransaction.set_line_item_quantity` is a conditional write that
  only applies when the item still holds the quantity the caller read.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from contextlib import AbstractAsyncContextManager
    from datetime import datetime
    from decimal import Decimal

    from billing_engine.core.types import Bill, Customer, LineItem, Product


class StoreTransaction(ABC):
    """Unit of work over customers, products, bills and line items.

    Lookups return ``None`` for missing rows and mutators return ``False`` /
    ``None`` when the target row is gone; raising typed errors is left to the
    domain components so both backends report failures identically.
    """

    ##########################
    # Customers (directory)  #
    ##########################

    @abstractmethod
    async def get_customer(self, customer_id: int) -> Customer | None:
        """Return the customer or ``None``."""

    async def customer_exists(self, customer_id: int) -> bool:
        """Return ``True`` if *customer_id* references an existing customer."""
        return await self.get_customer(customer_id) is not None

    @abstractmethod
    async def add_customer(self, name: str, email: str) -> Customer:
        """Insert a customer and return it with its generated id."""

    @abstractmethod
    async def list_customers(self) -> list[Customer]:
        """Return all customers ordered by id."""

    ########################
    # Products (catalog)   #
    ########################

    @abstractmethod
    async def get_product(self, product_id: str) -> Product | None:
        """Return the product with its current stock, or ``None``."""

    @abstractmethod
    async def add_product(
        self,
        name: str,
        unit_price: Decimal,
        quantity_in_stock: int,
        product_id: str | None = None,
    ) -> Product:
        """Insert a product.  A UUID4 string id is generated when omitted.

        Raises:
            ValueError: If *product_id* is already taken
        """

    @abstractmethod
    async def list_products(self) -> list[Product]:
        """Return all products ordered by name."""

    @abstractmethod
    async def update_product_details(
        self,
        product_id: str,
        name: str | None = None,
        unit_price: Decimal | None = None,
    ) -> Product | None:
        """Change catalog fields (never stock).  ``None`` if the product is gone."""

    ##########
    # Ledger #
    ##########

    @abstractmethod
    async def decrement_stock(self, product_id: str, quantity: int) -> bool:
        """Atomically take *quantity* units if at least that many are in stock.

        Returns ``False`` without side effects when the product is missing or
        holds fewer than *quantity* units.
        """

    @abstractmethod
    async def increment_stock(self, product_id: str, quantity: int) -> bool:
        """Atomically add *quantity* units.  ``False`` if the product is missing."""

    #########
    # Bills #
    #########

    @abstractmethod
    async def get_bill(self, bill_id: int, for_update: bool = False) -> Bill | None:
        """Return the bill header or ``None``.

        With *for_update* the row stays locked until the transaction ends on
        backends that support row locks.
        """

    @abstractmethod
    async def add_bill(self, customer_id: int, billing_date: datetime) -> Bill:
        """Insert an empty bill."""

    @abstractmethod
    async def update_bill(
        self, bill_id: int, customer_id: int, billing_date: datetime
    ) -> Bill | None:
        """Rewrite a bill header.  ``None`` if the bill is gone."""

    @abstractmethod
    async def delete_bill(self, bill_id: int) -> bool:
        """Delete a bill header.  ``False`` if it was already gone."""

    @abstractmethod
    async def list_bills(self) -> list[Bill]:
        """Return all bills ordered by id."""

    ##############
    # Line items #
    ##############

    @abstractmethod
    async def get_line_item(self, item_id: int) -> LineItem | None:
        """Return the line item or ``None``."""

    @abstractmethod
    async def add_line_item(
        self,
        bill_id: int,
        product_id: str,
        quantity: int,
        unit_price: Decimal,
    ) -> LineItem | None:
        """Attach a new item to *bill_id*.  ``None`` if the bill no longer exists."""

    @abstractmethod
    async def set_line_item_quantity(
        self, item_id: int, expected_quantity: int, new_quantity: int
    ) -> LineItem | None:
        """Set the quantity only if the item still holds *expected_quantity*.

        Returns ``None`` when the item is gone or was changed concurrently.
        """

    @abstractmethod
    async def delete_line_item(self, item_id: int) -> bool:
        """Delete a line item.  ``False`` if it was already gone."""

    @abstractmethod
    async def list_line_items(self, bill_id: int) -> list[LineItem]:
        """Return the bill's items in insertion order."""


class BillingStore(ABC):
    """Abstract base class for billing storage implementations.

    Implementations:
    - SQLAlchemyBillingStore: persistent storage (SQLite, PostgreSQL, MySQL)
    - InMemoryBillingStore: testing and development

    Example:
        ```python
        store = SQLAlchemyBillingStore(database_url="sqlite+aiosqlite:///./billing.db")
        await store.initialize()

        async with store.transaction() as tx:
            customer = await tx.add_customer("Hassan", "hassan@gmail.com")
            bill = await tx.add_bill(customer.id, datetime.now(UTC))
        ```
    """

    async def initialize(self) -> None:  # noqa: B027
        """Prepare the backend (create tables, open pools).  Idempotent."""

    async def close(self) -> None:  # noqa: B027
        """Release backend resources."""

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[StoreTransaction]:
        """Open a transaction scope.

        Commits when the block exits normally, rolls back on any exception
        and re-raises it.
        """


__all__ = ["BillingStore", "StoreTransaction"]
