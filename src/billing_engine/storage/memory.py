"""In-memory billing storage for testing and development.

WARNING: This implementation stores data in memory only. All data is lost
when the process restarts. Use ONLY for testing and development.

Transactions
------------
* Stock decrements run under an ``asyncio.Lock`` keyed by product id, so the
  check-and-decrement of concurrent reservations on one product is strictly
  ordered while different products never wait on each other.
* Stock increments (releases) are buffered and applied at commit.  A rolled
  back transaction therefore only ever has to give stock *back*, which keeps
  stock non-negative even if other transactions consumed stock meanwhile.
* Record changes are applied immediately and journalled; rollback replays the
  journal in reverse.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import uuid
from collections import defaultdict
from contextlib import asynccontextmanager
from functools import partial
from typing import TYPE_CHECKING, Any

from billing_engine.core.exceptions import StorageError
from billing_engine.core.types import Bill, Customer, LineItem, Product
from billing_engine.storage.base import BillingStore, StoreTransaction

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable
    from datetime import datetime
    from decimal import Decimal

logger = logging.getLogger(__name__)


class InMemoryBillingStore(BillingStore):
    """In-memory billing storage for testing and development.

    DO NOT USE IN PRODUCTION - all data is lost on restart!

    Example:
        ```python
        store = InMemoryBillingStore()

        async with store.transaction() as tx:
            product = await tx.add_product("Printer Epson", Decimal("1000"), 30)

        # Cleanup (for testing)
        store.clear()
        ```

    Attributes:
        _products: Product id -> Product (current stock included)
        _bills: Bill id -> Bill header
        _line_items: Line item id -> LineItem
    """

    def __init__(self) -> None:
        self._customers: dict[int, Customer] = {}
        self._products: dict[str, Product] = {}
        self._bills: dict[int, Bill] = {}
        self._line_items: dict[int, LineItem] = {}
        self._stock_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._customer_ids = itertools.count(1)
        self._bill_ids = itertools.count(1)
        self._line_item_ids = itertools.count(1)
        logger.info("Initialized in-memory billing store")

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[StoreTransaction]:
        tx = _InMemoryTransaction(self)
        try:
            yield tx
        except BaseException:
            await tx.rollback()
            raise
        await tx.commit()

    async def _add_stock(self, product_id: str, quantity: int) -> None:
        async with self._stock_locks[product_id]:
            product = self._products.get(product_id)
            if product is None:
                logger.warning("Stock for vanished product %s dropped: %d", product_id, quantity)
                return
            self._products[product_id] = product.model_copy(
                update={"quantity_in_stock": product.quantity_in_stock + quantity}
            )

    def clear(self) -> None:
        """Drop every record (for testing)."""
        self._customers.clear()
        self._products.clear()
        self._bills.clear()
        self._line_items.clear()
        self._stock_locks.clear()
        logger.info("Cleared all billing records from memory")

    def get_statistics(self) -> dict[str, Any]:
        """Return record counts (for debugging)."""
        return {
            "customers": len(self._customers),
            "products": len(self._products),
            "bills": len(self._bills),
            "line_items": len(self._line_items),
            "units_in_stock": sum(p.quantity_in_stock for p in self._products.values()),
        }


class _InMemoryTransaction(StoreTransaction):
    """Journalled unit of work over an :class:`InMemoryBillingStore`."""

    def __init__(self, store: InMemoryBillingStore) -> None:
        self._store = store
        self._undo: list[Callable[[], object]] = []
        self._taken_stock: dict[str, int] = {}
        self._pending_stock: dict[str, int] = {}
        self._closed = False

    async def commit(self) -> None:
        for product_id, quantity in self._pending_stock.items():
            await self._store._add_stock(product_id, quantity)
        self._pending_stock.clear()
        self._taken_stock.clear()
        self._undo.clear()
        self._closed = True

    async def rollback(self) -> None:
        if self._undo or self._taken_stock or self._pending_stock:
            logger.info(
                "Rolling back in-memory transaction (%d journal entries)", len(self._undo)
            )
        while self._undo:
            self._undo.pop()()
        for product_id, quantity in self._taken_stock.items():
            await self._store._add_stock(product_id, quantity)
        self._taken_stock.clear()
        self._pending_stock.clear()
        self._closed = True

    def _check_open(self) -> None:
        if self._closed:
            raise StorageError("transaction", "transaction is already closed")

    def _with_pending(self, product: Product) -> Product:
        pending = self._pending_stock.get(product.id, 0)
        if not pending:
            return product
        return product.model_copy(
            update={"quantity_in_stock": product.quantity_in_stock + pending}
        )

    # Customers

    async def get_customer(self, customer_id: int) -> Customer | None:
        return self._store._customers.get(customer_id)

    async def add_customer(self, name: str, email: str) -> Customer:
        self._check_open()
        customer = Customer(id=next(self._store._customer_ids), name=name, email=email)
        self._store._customers[customer.id] = customer
        self._undo.append(partial(self._store._customers.pop, customer.id, None))
        return customer

    async def list_customers(self) -> list[Customer]:
        return sorted(self._store._customers.values(), key=lambda c: c.id)

    # Products

    async def get_product(self, product_id: str) -> Product | None:
        product = self._store._products.get(product_id)
        return self._with_pending(product) if product is not None else None

    async def add_product(
        self,
        name: str,
        unit_price: Decimal,
        quantity_in_stock: int,
        product_id: str | None = None,
    ) -> Product:
        self._check_open()
        product_id = product_id or str(uuid.uuid4())
        if product_id in self._store._products:
            raise ValueError(f"Product with ID {product_id} already exists")
        product = Product(
            id=product_id,
            name=name,
            unit_price=unit_price,
            quantity_in_stock=quantity_in_stock,
        )
        self._store._products[product_id] = product
        self._undo.append(partial(self._store._products.pop, product_id, None))
        return product

    async def list_products(self) -> list[Product]:
        products = [self._with_pending(p) for p in self._store._products.values()]
        return sorted(products, key=lambda p: (p.name, p.id))

    async def update_product_details(
        self,
        product_id: str,
        name: str | None = None,
        unit_price: Decimal | None = None,
    ) -> Product | None:
        self._check_open()
        current = self._store._products.get(product_id)
        if current is None:
            return None
        update: dict[str, Any] = {}
        if name is not None:
            update["name"] = name
        if unit_price is not None:
            update["unit_price"] = unit_price
        self._store._products[product_id] = current.model_copy(update=update)

        def undo() -> None:
            latest = self._store._products.get(product_id)
            if latest is not None:
                self._store._products[product_id] = latest.model_copy(
                    update={"name": current.name, "unit_price": current.unit_price}
                )

        self._undo.append(undo)
        return await self.get_product(product_id)

    # Ledger

    async def decrement_stock(self, product_id: str, quantity: int) -> bool:
        self._check_open()
        async with self._store._stock_locks[product_id]:
            product = self._store._products.get(product_id)
            if product is None or product.quantity_in_stock < quantity:
                return False
            self._store._products[product_id] = product.model_copy(
                update={"quantity_in_stock": product.quantity_in_stock - quantity}
            )
        self._taken_stock[product_id] = self._taken_stock.get(product_id, 0) + quantity
        return True

    async def increment_stock(self, product_id: str, quantity: int) -> bool:
        self._check_open()
        if product_id not in self._store._products:
            return False
        self._pending_stock[product_id] = self._pending_stock.get(product_id, 0) + quantity
        return True

    # Bills

    async def get_bill(self, bill_id: int, for_update: bool = False) -> Bill | None:
        return self._store._bills.get(bill_id)

    async def add_bill(self, customer_id: int, billing_date: datetime) -> Bill:
        self._check_open()
        if customer_id not in self._store._customers:
            raise StorageError("add_bill", f"customer {customer_id} does not exist")
        bill = Bill(
            id=next(self._store._bill_ids),
            customer_id=customer_id,
            billing_date=billing_date,
        )
        self._store._bills[bill.id] = bill
        self._undo.append(partial(self._store._bills.pop, bill.id, None))
        return bill

    async def update_bill(
        self, bill_id: int, customer_id: int, billing_date: datetime
    ) -> Bill | None:
        self._check_open()
        current = self._store._bills.get(bill_id)
        if current is None:
            return None
        updated = Bill(id=bill_id, customer_id=customer_id, billing_date=billing_date)
        self._store._bills[bill_id] = updated

        def undo() -> None:
            if bill_id in self._store._bills:
                self._store._bills[bill_id] = current

        self._undo.append(undo)
        return updated

    async def delete_bill(self, bill_id: int) -> bool:
        self._check_open()
        if any(i.bill_id == bill_id for i in self._store._line_items.values()):
            raise StorageError("delete_bill", f"bill {bill_id} still has line items")
        bill = self._store._bills.pop(bill_id, None)
        if bill is None:
            return False

        def undo() -> None:
            self._store._bills[bill_id] = bill

        self._undo.append(undo)
        return True

    async def list_bills(self) -> list[Bill]:
        return sorted(self._store._bills.values(), key=lambda b: b.id)

    # Line items

    async def get_line_item(self, item_id: int) -> LineItem | None:
        return self._store._line_items.get(item_id)

    async def add_line_item(
        self,
        bill_id: int,
        product_id: str,
        quantity: int,
        unit_price: Decimal,
    ) -> LineItem | None:
        self._check_open()
        if bill_id not in self._store._bills:
            return None
        item = LineItem(
            id=next(self._store._line_item_ids),
            bill_id=bill_id,
            product_id=product_id,
            quantity=quantity,
            unit_price=unit_price,
        )
        self._store._line_items[item.id] = item
        self._undo.append(partial(self._store._line_items.pop, item.id, None))
        return item

    async def set_line_item_quantity(
        self, item_id: int, expected_quantity: int, new_quantity: int
    ) -> LineItem | None:
        self._check_open()
        current = self._store._line_items.get(item_id)
        if current is None or current.quantity != expected_quantity:
            return None
        updated = current.model_copy(update={"quantity": new_quantity})
        self._store._line_items[item_id] = updated

        def undo() -> None:
            if item_id in self._store._line_items:
                self._store._line_items[item_id] = current

        self._undo.append(undo)
        return updated

    async def delete_line_item(self, item_id: int) -> bool:
        self._check_open()
        item = self._store._line_items.pop(item_id, None)
        if item is None:
            return False

        def undo() -> None:
            self._store._line_items[item_id] = item

        self._undo.append(undo)
        return True

    async def list_line_items(self, bill_id: int) -> list[LineItem]:
        items = [i for i in self._store._line_items.values() if i.bill_id == bill_id]
        return sorted(items, key=lambda i: i.id)


__all__ = ["InMemoryBillingStore"]
