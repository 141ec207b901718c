"""Tests for InventoryLedger over both storage backends."""
from __future__ import annotations

from decimal import Decimal

import pytest

from billing_engine.core.exceptions import (
    BillingValidationError,
    InsufficientStockError,
    ProductNotFoundError,
)
from billing_engine.ledger import InventoryLedger


async def _product(store, stock: int) -> str:
    async with store.transaction() as tx:
        product = await tx.add_product("Printer Epson", Decimal("1000"), stock)
    return product.id


async def _stock(store, product_id: str) -> int:
    async with store.transaction() as tx:
        product = await tx.get_product(product_id)
    assert product is not None
    return product.quantity_in_stock


class TestReserve:

    @pytest.mark.asyncio
    async def test_reserve_decrements(self, store) -> None:
        pid = await _product(store, 10)
        async with store.transaction() as tx:
            await InventoryLedger(tx).reserve(pid, 4)
        assert await _stock(store, pid) == 6

    @pytest.mark.asyncio
    async def test_reserve_all_remaining(self, store) -> None:
        pid = await _product(store, 3)
        async with store.transaction() as tx:
            await InventoryLedger(tx).reserve(pid, 3)
        assert await _stock(store, pid) == 0

    @pytest.mark.asyncio
    async def test_insufficient_reports_available(self, store) -> None:
        pid = await _product(store, 2)
        with pytest.raises(InsufficientStockError) as info:
            async with store.transaction() as tx:
                await InventoryLedger(tx).reserve(pid, 3)
        assert info.value.product_id == pid
        assert info.value.requested == 3
        assert info.value.available == 2
        assert await _stock(store, pid) == 2

    @pytest.mark.asyncio
    async def test_unknown_product(self, store) -> None:
        with pytest.raises(ProductNotFoundError):
            async with store.transaction() as tx:
                await InventoryLedger(tx).reserve("missing", 1)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("quantity", [0, -3])
    async def test_non_positive_rejected(self, store, quantity: int) -> None:
        pid = await _product(store, 5)
        with pytest.raises(BillingValidationError) as info:
            async with store.transaction() as tx:
                await InventoryLedger(tx).reserve(pid, quantity)
        assert info.value.field == "quantity"
        assert await _stock(store, pid) == 5

    @pytest.mark.asyncio
    async def test_reservation_undone_when_transaction_fails(self, store) -> None:
        pid = await _product(store, 5)
        with pytest.raises(RuntimeError):
            async with store.transaction() as tx:
                await InventoryLedger(tx).reserve(pid, 4)
                raise RuntimeError("boom")
        assert await _stock(store, pid) == 5


class TestRelease:

    @pytest.mark.asyncio
    async def test_release_increments(self, store) -> None:
        pid = await _product(store, 1)
        async with store.transaction() as tx:
            await InventoryLedger(tx).release(pid, 4)
        assert await _stock(store, pid) == 5

    @pytest.mark.asyncio
    async def test_release_visible_inside_transaction(self, store) -> None:
        pid = await _product(store, 1)
        async with store.transaction() as tx:
            await InventoryLedger(tx).release(pid, 2)
            product = await tx.get_product(pid)
            assert product is not None
            assert product.quantity_in_stock == 3

    @pytest.mark.asyncio
    async def test_release_unknown_product(self, store) -> None:
        with pytest.raises(ProductNotFoundError):
            async with store.transaction() as tx:
                await InventoryLedger(tx).release("missing", 1)

    @pytest.mark.asyncio
    async def test_release_discarded_on_rollback(self, store) -> None:
        pid = await _product(store, 1)
        with pytest.raises(RuntimeError):
            async with store.transaction() as tx:
                await InventoryLedger(tx).release(pid, 9)
                raise RuntimeError("boom")
        assert await _stock(store, pid) == 1


class TestAdjustAndRestock:

    @pytest.mark.asyncio
    async def test_adjust_signs(self, store) -> None:
        pid = await _product(store, 10)
        async with store.transaction() as tx:
            ledger = InventoryLedger(tx)
            await ledger.adjust(pid, 3)
            await ledger.adjust(pid, 0)
            await ledger.adjust(pid, -1)
        assert await _stock(store, pid) == 8

    @pytest.mark.asyncio
    async def test_check_availability_is_read_only(self, store) -> None:
        pid = await _product(store, 4)
        async with store.transaction() as tx:
            ledger = InventoryLedger(tx)
            assert await ledger.check_availability(pid, 4) is True
            assert await ledger.check_availability(pid, 5) is False
        assert await _stock(store, pid) == 4

    @pytest.mark.asyncio
    async def test_check_availability_rejects_zero(self, store) -> None:
        pid = await _product(store, 4)
        with pytest.raises(BillingValidationError):
            async with store.transaction() as tx:
                await InventoryLedger(tx).check_availability(pid, 0)

    @pytest.mark.asyncio
    async def test_restock_returns_product(self, store) -> None:
        pid = await _product(store, 4)
        async with store.transaction() as tx:
            product = await InventoryLedger(tx).restock(pid, 6)
        assert product.quantity_in_stock == 10

    @pytest.mark.asyncio
    async def test_restock_zero_is_a_read(self, store) -> None:
        pid = await _product(store, 4)
        async with store.transaction() as tx:
            product = await InventoryLedger(tx).restock(pid, 0)
        assert product.quantity_in_stock == 4

    @pytest.mark.asyncio
    async def test_restock_zero_unknown_product(self, store) -> None:
        with pytest.raises(ProductNotFoundError):
            async with store.transaction() as tx:
                await InventoryLedger(tx).restock("missing", 0)
