"""Bill aggregate — bill identity, customer reference and derived totals."""
from __future__ import annotations

import logging
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from billing_engine.core.exceptions import BillNotFoundError, CustomerNotFoundError
from billing_engine.core.types import BillDetails, LineItemDetails, as_utc
from billing_engine.line_items import LineItemManager

if TYPE_CHECKING:
    from collections.abc import Iterable

    from billing_engine.core.types import Bill, LineItem
    from billing_engine.storage.base import StoreTransaction

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def bill_total(items: Iterable[LineItem]) -> Decimal:
    """Sum ``quantity * unit_price`` over *items*; ``0.00`` when empty.

    Uses the price snapshots on the items, never the live catalog price.

    >>> bill_total([])
    Decimal('0.00')
    """
    return sum((item.subtotal for item in items), ZERO)


class BillAggregate:
    """Bill header operations within one store transaction.

    Deletion goes through :class:`~billing_engine.line_items.LineItemManager`
    so every item's stock is released before the bill record disappears.
    """

    def __init__(self, tx: StoreTransaction, items: LineItemManager | None = None) -> None:
        self._tx = tx
        self.items = items or LineItemManager(tx)

    async def _require_customer(self, customer_id: int) -> None:
        if not await self._tx.customer_exists(customer_id):
            logger.warning("Unknown customer %s", customer_id)
            raise CustomerNotFoundError(identifier=customer_id)

    async def get(self, bill_id: int, for_update: bool = False) -> Bill:
        bill = await self._tx.get_bill(bill_id, for_update=for_update)
        if bill is None:
            raise BillNotFoundError(identifier=bill_id)
        return bill

    async def list(self) -> list[Bill]:
        return await self._tx.list_bills()

    async def create(self, customer_id: int, billing_date: datetime | None = None) -> Bill:
        """Create an empty bill for an existing customer.

        Args:
            customer_id: Must reference an existing customer
            billing_date: Defaults to now (UTC)

        Raises:
            CustomerNotFoundError: If the customer does not exist
        """
        await self._require_customer(customer_id)
        when = as_utc(billing_date) if billing_date is not None else datetime.now(UTC)
        bill = await self._tx.add_bill(customer_id, when)
        logger.info("Created bill %s for customer %s", bill.id, customer_id)
        return bill

    async def update(
        self,
        bill_id: int,
        customer_id: int | None = None,
        billing_date: datetime | None = None,
    ) -> Bill:
        """Change the customer and/or date of a bill.  Items are not touched.

        Raises:
            BillNotFoundError: If the bill does not exist
            CustomerNotFoundError: If a new customer does not exist
        """
        current = await self.get(bill_id)
        new_customer = current.customer_id if customer_id is None else customer_id
        if new_customer != current.customer_id:
            await self._require_customer(new_customer)
        new_date = current.billing_date if billing_date is None else as_utc(billing_date)

        updated = await self._tx.update_bill(bill_id, new_customer, new_date)
        if updated is None:
            raise BillNotFoundError(identifier=bill_id)
        logger.info("Updated bill %s", bill_id)
        return updated

    async def delete(self, bill_id: int) -> list[LineItem]:
        """Release and delete every item, then delete the bill.

        Returns the removed items.

        Raises:
            BillNotFoundError: If the bill does not exist
        """
        await self.get(bill_id, for_update=True)

        removed: list[LineItem] = []
        # Loop until empty so items attached while we were removing are caught too.
        while items := await self._tx.list_line_items(bill_id):
            # Product order, so concurrent deletes lock product rows in the same order.
            for item in sorted(items, key=lambda i: (i.product_id, i.id)):
                removed.append(await self.items.remove_item(item.id))

        if not await self._tx.delete_bill(bill_id):
            raise BillNotFoundError(identifier=bill_id)
        logger.info("Deleted bill %s (%d line items released)", bill_id, len(removed))
        return removed

    async def total(self, bill_id: int) -> Decimal:
        await self.get(bill_id)
        return bill_total(await self._tx.list_line_items(bill_id))

    async def details(self, bill_id: int) -> BillDetails:
        """Bill with its customer, items (each with the live product) and total."""
        bill = await self.get(bill_id)
        items = await self._tx.list_line_items(bill_id)
        lines = [
            LineItemDetails(item=item, product=await self._tx.get_product(item.product_id))
            for item in items
        ]
        return BillDetails(
            bill=bill,
            customer=await self._tx.get_customer(bill.customer_id),
            items=lines,
            total=bill_total(items),
        )


__all__ = ["BillAggregate", "bill_total"]
