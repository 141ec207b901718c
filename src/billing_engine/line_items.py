"""Line item manager — CRUD over bill lines, coupled to the inventory ledger.

Each operation does its checks first, then the ledger step, then the record
write.  When the record write fails after the ledger step has succeeded,
the manager raises, and rolling back the enclosing store transaction
restores the stock.  Callers therefore never observe stock and items out of
step.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from billing_engine.core.exceptions import (
    BillNotFoundError,
    ConcurrentModificationError,
    LineItemNotFoundError,
    ProductNotFoundError,
)
from billing_engine.ledger import InventoryLedger
from billing_engine.utils.validation import require_positive_quantity

if TYPE_CHECKING:
    from billing_engine.core.types import LineItem
    from billing_engine.storage.base import StoreTransaction

logger = logging.getLogger(__name__)


class LineItemManager:
    """Creates, re-quantifies and removes line items within one transaction."""

    def __init__(self, tx: StoreTransaction, ledger: InventoryLedger | None = None) -> None:
        self._tx = tx
        self.ledger = ledger or InventoryLedger(tx)

    async def add_item(self, bill_id: int, product_id: str, quantity: int) -> LineItem:
        """Reserve stock and attach a new line to *bill_id*.

        The product's current price is captured on the item and never
        rewritten afterwards.

        Raises:
            BillingValidationError: If *quantity* is below 1
            BillNotFoundError: If the bill does not exist (or vanished mid-way)
            ProductNotFoundError: If the product does not exist
            InsufficientStockError: If the ledger refuses the reservation
        """
        require_positive_quantity(quantity)
        # Bill row before product row, the same lock order as bill deletion.
        if await self._tx.get_bill(bill_id, for_update=True) is None:
            raise BillNotFoundError(identifier=bill_id)
        product = await self._tx.get_product(product_id)
        if product is None:
            raise ProductNotFoundError(identifier=product_id)

        await self.ledger.reserve(product_id, quantity)

        item = await self._tx.add_line_item(
            bill_id=bill_id,
            product_id=product_id,
            quantity=quantity,
            unit_price=product.unit_price,
        )
        if item is None:
            logger.warning(
                "Bill %s deleted while adding product %s; reservation rolled back",
                bill_id, product_id,
            )
            raise BillNotFoundError(identifier=bill_id)

        logger.info(
            "Added line item %s: bill=%s product=%s quantity=%d unit_price=%s",
            item.id, bill_id, product_id, quantity, item.unit_price,
        )
        return item

    async def update_quantity(self, item_id: int, new_quantity: int) -> LineItem:
        """Move an item to *new_quantity*, reserving or releasing the difference.

        Setting the current quantity again touches neither the ledger nor the
        record.

        Raises:
            BillingValidationError: If *new_quantity* is below 1
            LineItemNotFoundError: If the item does not exist
            InsufficientStockError: If the extra units cannot be reserved
            ConcurrentModificationError: If the item changed since it was read
        """
        require_positive_quantity(new_quantity)
        current = await self._tx.get_line_item(item_id)
        if current is None:
            raise LineItemNotFoundError(identifier=item_id)

        delta = new_quantity - current.quantity
        if delta == 0:
            logger.debug("Line item %s already at quantity %d", item_id, new_quantity)
            return current

        await self.ledger.adjust(current.product_id, delta)

        updated = await self._tx.set_line_item_quantity(
            item_id, expected_quantity=current.quantity, new_quantity=new_quantity
        )
        if updated is None:
            logger.warning(
                "Line item %s changed concurrently (expected quantity %d)",
                item_id, current.quantity,
            )
            raise ConcurrentModificationError(item_id, current.quantity)

        logger.info(
            "Line item %s quantity %d -> %d", item_id, current.quantity, new_quantity
        )
        return updated

    async def remove_item(self, item_id: int) -> LineItem:
        """Release the item's full quantity and delete it.

        Raises:
            LineItemNotFoundError: If the item does not exist
        """
        item = await self._tx.get_line_item(item_id)
        if item is None:
            raise LineItemNotFoundError(identifier=item_id)

        await self.ledger.release(item.product_id, item.quantity)

        if not await self._tx.delete_line_item(item_id):
            # Removed concurrently; rollback discards the release above.
            raise LineItemNotFoundError(identifier=item_id)

        logger.info(
            "Removed line item %s: bill=%s product=%s released=%d",
            item_id, item.bill_id, item.product_id, item.quantity,
        )
        return item

    async def get_item(self, item_id: int) -> LineItem:
        item = await self._tx.get_line_item(item_id)
        if item is None:
            raise LineItemNotFoundError(identifier=item_id)
        return item

    async def list_items(self, bill_id: int) -> list[LineItem]:
        """Return the bill's items in insertion order."""
        if await self._tx.get_bill(bill_id) is None:
            raise BillNotFoundError(identifier=bill_id)
        return await self._tx.list_line_items(bill_id)


__all__ = ["LineItemManager"]
