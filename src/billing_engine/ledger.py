"""Inventory ledger — the sole authority over product stock.

The ledger never reads stock and then writes it back.  Every reservation is a
single :meth:`~billing_engine.storage.base.StoreTransaction.decrement_stock`
call, which the storage backends implement as a per-product atomic
check-and-decrement.  A refused reservation has no side effects, so the
caller can simply let the error propagate and the enclosing transaction
rolls back whatever else it did.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from billing_engine.core.exceptions import InsufficientStockError, ProductNotFoundError
from billing_engine.utils.validation import require_positive_quantity

if TYPE_CHECKING:
    from billing_engine.core.types import Product
    from billing_engine.storage.base import StoreTransaction

logger = logging.getLogger(__name__)


class InventoryLedger:
    """Stock accounting bound to one store transaction.

    Example:
        ```python
        async with store.transaction() as tx:
            ledger = InventoryLedger(tx)
            await ledger.reserve("printer-epson", 3)
        ```
    """

    def __init__(self, tx: StoreTransaction) -> None:
        self._tx = tx

    async def reserve(self, product_id: str, quantity: int) -> None:
        """Take *quantity* units of *product_id* or fail without side effects.

        Raises:
            BillingValidationError: If *quantity* is below 1
            ProductNotFoundError: If the product does not exist
            InsufficientStockError: If fewer than *quantity* units are in stock
        """
        require_positive_quantity(quantity)
        if await self._tx.decrement_stock(product_id, quantity):
            logger.info("Reserved %d of product %s", quantity, product_id)
            return

        # The decrement was refused; find out why for the error report.
        product = await self._tx.get_product(product_id)
        if product is None:
            logger.warning("Reservation for unknown product %s", product_id)
            raise ProductNotFoundError(identifier=product_id)
        logger.warning(
            "Insufficient stock for product %s: requested=%d available=%d",
            product_id, quantity, product.quantity_in_stock,
        )
        raise InsufficientStockError(
            product_id=product_id,
            requested=quantity,
            available=product.quantity_in_stock,
        )

    async def release(self, product_id: str, quantity: int) -> None:
        """Return *quantity* units to stock.

        Raises:
            ProductNotFoundError: If the product does not exist
        """
        require_positive_quantity(quantity)
        if not await self._tx.increment_stock(product_id, quantity):
            logger.warning("Release for unknown product %s", product_id)
            raise ProductNotFoundError(identifier=product_id)
        logger.info("Released %d of product %s", quantity, product_id)

    async def adjust(self, product_id: str, delta: int) -> None:
        """Reserve a positive *delta*, release a negative one, ignore zero."""
        if delta > 0:
            await self.reserve(product_id, delta)
        elif delta < 0:
            await self.release(product_id, -delta)

    async def check_availability(self, product_id: str, quantity: int) -> bool:
        """Return True if *quantity* units could be reserved right now.

        Read-only; a later :meth:`reserve` can still fail.
        """
        require_positive_quantity(quantity)
        product = await self._tx.get_product(product_id)
        if product is None:
            raise ProductNotFoundError(identifier=product_id)
        return product.quantity_in_stock >= quantity

    async def restock(self, product_id: str, delta: int) -> Product:
        """Administrative stock change by *delta* units (either sign).

        Unlike :meth:`adjust` this is not tied to a line item.  A change that
        would leave the product below zero is refused.

        Raises:
            ProductNotFoundError: If the product does not exist
            InsufficientStockError: If *delta* would make stock negative
        """
        if delta > 0:
            await self.release(product_id, delta)
        elif delta < 0:
            await self.reserve(product_id, -delta)
        product = await self._tx.get_product(product_id)
        if product is None:
            raise ProductNotFoundError(identifier=product_id)
        logger.info(
            "Restocked product %s by %d (now %d)",
            product_id, delta, product.quantity_in_stock,
        )
        return product


__all__ = ["InventoryLedger"]
