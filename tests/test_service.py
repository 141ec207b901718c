"""Billing service scenarios, run against every storage backend.

These are the end-to-end stock accounting rules: reservations, releases,
cascade deletion, snapshot pricing and the stock conservation invariant.
"""
from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from billing_engine.core.config import BillingConfig
from billing_engine.core.exceptions import (
    BillingValidationError,
    BillNotFoundError,
    CustomerNotFoundError,
    InsufficientStockError,
    LineItemNotFoundError,
    ProductNotFoundError,
)
from billing_engine.service import BillingService
from billing_engine.storage.memory import InMemoryBillingStore


class TestStockScenarios:

    @pytest.mark.asyncio
    async def test_add_update_remove_walkthrough(self, service, catalog, stock_of) -> None:
        """stock 10 -> add 4 -> 6 -> update to 7 -> 3 -> remove -> 10."""
        item = await service.add_item(catalog.bill.id, catalog.desk.id, 4)
        assert await stock_of(catalog.desk.id) == 6

        item = await service.update_item_quantity(item.id, 7)
        assert item.quantity == 7
        assert await stock_of(catalog.desk.id) == 3

        await service.remove_item(item.id)
        assert await stock_of(catalog.desk.id) == 10
        with pytest.raises(LineItemNotFoundError):
            await service.get_item(item.id)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("quantity", [0, -1, -50])
    async def test_non_positive_quantity_is_validation_error(
        self, service, catalog, stock_of, quantity: int
    ) -> None:
        with pytest.raises(BillingValidationError):
            await service.add_item(catalog.bill.id, catalog.desk.id, quantity)
        assert await stock_of(catalog.desk.id) == 10
        assert await service.list_items(catalog.bill.id) == []

    @pytest.mark.asyncio
    async def test_update_to_non_positive_quantity_rejected(
        self, service, catalog, stock_of
    ) -> None:
        item = await service.add_item(catalog.bill.id, catalog.desk.id, 2)
        with pytest.raises(BillingValidationError):
            await service.update_item_quantity(item.id, 0)
        assert (await service.get_item(item.id)).quantity == 2
        assert await stock_of(catalog.desk.id) == 8

    @pytest.mark.asyncio
    async def test_insufficient_stock_leaves_nothing_behind(
        self, service, catalog, stock_of
    ) -> None:
        with pytest.raises(InsufficientStockError) as info:
            await service.add_item(catalog.bill.id, catalog.laptop.id, 6)
        assert info.value.requested == 6
        assert info.value.available == 5
        assert await stock_of(catalog.laptop.id) == 5
        assert await service.list_items(catalog.bill.id) == []

    @pytest.mark.asyncio
    async def test_exact_stock_can_be_reserved(self, service, catalog, stock_of) -> None:
        await service.add_item(catalog.bill.id, catalog.laptop.id, 5)
        assert await stock_of(catalog.laptop.id) == 0
        with pytest.raises(InsufficientStockError):
            await service.add_item(catalog.bill.id, catalog.laptop.id, 1)

    @pytest.mark.asyncio
    async def test_rejected_increase_leaves_item_unchanged(
        self, service, catalog, stock_of
    ) -> None:
        item = await service.add_item(catalog.bill.id, catalog.laptop.id, 2)
        with pytest.raises(InsufficientStockError):
            await service.update_item_quantity(item.id, 9)
        assert (await service.get_item(item.id)).quantity == 2
        assert await stock_of(catalog.laptop.id) == 3

    @pytest.mark.asyncio
    async def test_decrease_releases_difference(self, service, catalog, stock_of) -> None:
        item = await service.add_item(catalog.bill.id, catalog.printer.id, 8)
        await service.update_item_quantity(item.id, 3)
        assert await stock_of(catalog.printer.id) == 17

    @pytest.mark.asyncio
    async def test_same_quantity_update_is_ledger_noop(
        self, service, catalog, stock_of
    ) -> None:
        item = await service.add_item(catalog.bill.id, catalog.desk.id, 4)
        same = await service.update_item_quantity(item.id, 4)
        assert same == item
        assert await stock_of(catalog.desk.id) == 6

    @pytest.mark.asyncio
    async def test_remove_then_readd_round_trip(self, service, catalog, stock_of) -> None:
        item = await service.add_item(catalog.bill.id, catalog.printer.id, 6)
        before = await stock_of(catalog.printer.id)
        await service.remove_item(item.id)
        await service.add_item(catalog.bill.id, catalog.printer.id, 6)
        assert await stock_of(catalog.printer.id) == before

    @pytest.mark.asyncio
    async def test_remove_twice_is_not_found(self, service, catalog, stock_of) -> None:
        item = await service.add_item(catalog.bill.id, catalog.desk.id, 1)
        await service.remove_item(item.id)
        with pytest.raises(LineItemNotFoundError):
            await service.remove_item(item.id)
        assert await stock_of(catalog.desk.id) == 10


class TestAddItemErrors:

    @pytest.mark.asyncio
    async def test_unknown_bill(self, service, catalog, stock_of) -> None:
        with pytest.raises(BillNotFoundError):
            await service.add_item(9999, catalog.desk.id, 1)
        assert await stock_of(catalog.desk.id) == 10

    @pytest.mark.asyncio
    async def test_unknown_product(self, service, catalog) -> None:
        with pytest.raises(ProductNotFoundError):
            await service.add_item(catalog.bill.id, "no-such-product", 1)

    @pytest.mark.asyncio
    async def test_unknown_item_update(self, service, catalog) -> None:
        with pytest.raises(LineItemNotFoundError):
            await service.update_item_quantity(424242, 3)


class TestBillDeletion:

    @pytest.mark.asyncio
    async def test_delete_releases_every_item(self, service, catalog, stock_of) -> None:
        first = await service.add_item(catalog.bill.id, catalog.desk.id, 3)
        second = await service.add_item(catalog.bill.id, catalog.printer.id, 5)
        assert await stock_of(catalog.desk.id) == 7
        assert await stock_of(catalog.printer.id) == 15

        await service.delete_bill(catalog.bill.id)

        assert await stock_of(catalog.desk.id) == 10
        assert await stock_of(catalog.printer.id) == 20
        with pytest.raises(BillNotFoundError):
            await service.get_bill(catalog.bill.id)
        for item in (first, second):
            with pytest.raises(LineItemNotFoundError):
                await service.get_item(item.id)

    @pytest.mark.asyncio
    async def test_delete_empty_bill(self, service, catalog) -> None:
        await service.delete_bill(catalog.bill.id)
        assert await service.list_bills() == []

    @pytest.mark.asyncio
    async def test_delete_missing_bill(self, service, catalog) -> None:
        with pytest.raises(BillNotFoundError):
            await service.delete_bill(9999)

    @pytest.mark.asyncio
    async def test_delete_leaves_other_bills_alone(self, service, catalog, stock_of) -> None:
        other = await service.create_bill(catalog.customer.id)
        kept = await service.add_item(other.id, catalog.desk.id, 2)
        await service.add_item(catalog.bill.id, catalog.desk.id, 3)

        await service.delete_bill(catalog.bill.id)

        assert await stock_of(catalog.desk.id) == 8
        assert await service.get_item(kept.id) == kept


class TestTotals:

    @pytest.mark.asyncio
    async def test_total_uses_price_snapshots(self, service, catalog) -> None:
        await service.add_item(catalog.bill.id, catalog.desk.id, 2)      # 10.00 x 2
        await service.add_item(catalog.bill.id, catalog.printer.id, 3)   # 5.00 x 3
        assert await service.bill_total(catalog.bill.id) == Decimal("35.00")

        await service.update_product(catalog.desk.id, unit_price=Decimal("99.99"))

        assert await service.bill_total(catalog.bill.id) == Decimal("35.00")
        details = await service.get_bill_details(catalog.bill.id)
        assert details.total == Decimal("35.00")
        # The live product view shows the new price; the line keeps the old one.
        desk_line = next(d for d in details.items if d.item.product_id == catalog.desk.id)
        assert desk_line.item.unit_price == Decimal("10.00")
        assert desk_line.product is not None
        assert desk_line.product.unit_price == Decimal("99.99")

    @pytest.mark.asyncio
    async def test_empty_bill_total_is_zero(self, service, catalog) -> None:
        assert await service.bill_total(catalog.bill.id) == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_details_include_customer_and_items_in_order(
        self, service, catalog
    ) -> None:
        a = await service.add_item(catalog.bill.id, catalog.printer.id, 1)
        b = await service.add_item(catalog.bill.id, catalog.desk.id, 1)
        details = await service.get_bill_details(catalog.bill.id)
        assert details.customer == catalog.customer
        assert [d.item.id for d in details.items] == [a.id, b.id]

    @pytest.mark.asyncio
    async def test_total_for_missing_bill(self, service) -> None:
        with pytest.raises(BillNotFoundError):
            await service.bill_total(1)


class TestStockConservation:

    @pytest.mark.asyncio
    async def test_stock_plus_reserved_is_constant(self, service, catalog) -> None:
        initial = {p.id: p.quantity_in_stock for p in await service.list_products()}
        second_bill = await service.create_bill(catalog.customer.id)

        a = await service.add_item(catalog.bill.id, catalog.desk.id, 4)
        b = await service.add_item(second_bill.id, catalog.desk.id, 3)
        c = await service.add_item(catalog.bill.id, catalog.laptop.id, 2)
        await service.update_item_quantity(a.id, 6)
        await service.update_item_quantity(c.id, 1)
        with pytest.raises(InsufficientStockError):
            await service.update_item_quantity(b.id, 10)
        await service.remove_item(a.id)
        await service.add_item(second_bill.id, catalog.printer.id, 20)
        await service.delete_bill(catalog.bill.id)

        reserved: dict[str, int] = dict.fromkeys(initial, 0)
        for bill in await service.list_bills():
            for item in await service.list_items(bill.id):
                reserved[item.product_id] += item.quantity

        for product in await service.list_products():
            assert product.quantity_in_stock >= 0
            assert product.quantity_in_stock + reserved[product.id] == initial[product.id]


class TestBills:

    @pytest.mark.asyncio
    async def test_create_requires_existing_customer(self, service) -> None:
        with pytest.raises(CustomerNotFoundError):
            await service.create_bill(77)

    @pytest.mark.asyncio
    async def test_create_defaults_date_to_now_utc(self, service, catalog) -> None:
        bill = await service.create_bill(catalog.customer.id)
        assert bill.billing_date.tzinfo is not None
        assert abs((datetime.now(UTC) - bill.billing_date).total_seconds()) < 60

    @pytest.mark.asyncio
    async def test_update_bill(self, service, catalog) -> None:
        other = await service.create_customer("Fadwa", "fadwa@gmail.com")
        item = await service.add_item(catalog.bill.id, catalog.desk.id, 2)
        when = datetime(2024, 1, 15, 9, 30, tzinfo=UTC)

        bill = await service.update_bill(catalog.bill.id, other.id, when)

        assert bill.customer_id == other.id
        assert bill.billing_date == when
        assert await service.list_items(catalog.bill.id) == [item]

    @pytest.mark.asyncio
    async def test_update_bill_unknown_customer(self, service, catalog) -> None:
        with pytest.raises(CustomerNotFoundError):
            await service.update_bill(catalog.bill.id, customer_id=999)
        assert (await service.get_bill(catalog.bill.id)).customer_id == catalog.customer.id

    @pytest.mark.asyncio
    async def test_update_missing_bill(self, service, catalog) -> None:
        with pytest.raises(BillNotFoundError):
            await service.update_bill(999, customer_id=catalog.customer.id)

    @pytest.mark.asyncio
    async def test_list_items_of_missing_bill(self, service) -> None:
        with pytest.raises(BillNotFoundError):
            await service.list_items(5)


class TestInventoryOperations:

    @pytest.mark.asyncio
    async def test_check_availability(self, service, catalog) -> None:
        assert await service.check_availability(catalog.laptop.id, 5) is True
        assert await service.check_availability(catalog.laptop.id, 6) is False

    @pytest.mark.asyncio
    async def test_check_availability_unknown_product(self, service) -> None:
        with pytest.raises(ProductNotFoundError):
            await service.check_availability("ghost", 1)

    @pytest.mark.asyncio
    async def test_restock_up_and_down(self, service, catalog) -> None:
        product = await service.restock_product(catalog.laptop.id, 3)
        assert product.quantity_in_stock == 8
        product = await service.restock_product(catalog.laptop.id, -8)
        assert product.quantity_in_stock == 0

    @pytest.mark.asyncio
    async def test_restock_below_zero_refused(self, service, catalog, stock_of) -> None:
        with pytest.raises(InsufficientStockError):
            await service.restock_product(catalog.laptop.id, -6)
        assert await stock_of(catalog.laptop.id) == 5


class TestCatalogAndDirectory:

    @pytest.mark.asyncio
    async def test_customer_round_trip(self, service) -> None:
        created = await service.create_customer("Marwan", "marwan@gmail.com")
        assert await service.get_customer(created.id) == created
        assert await service.list_customers() == [created]

    @pytest.mark.asyncio
    async def test_invalid_email_rejected(self, service) -> None:
        with pytest.raises(BillingValidationError):
            await service.create_customer("Marwan", "not-an-email")

    @pytest.mark.asyncio
    async def test_product_with_explicit_id(self, service) -> None:
        product = await service.create_product("Mouse", Decimal("25"), 3, product_id="mouse-01")
        assert product.id == "mouse-01"
        with pytest.raises(BillingValidationError):
            await service.create_product("Mouse", Decimal("25"), 3, product_id="mouse-01")

    @pytest.mark.asyncio
    async def test_negative_price_rejected(self, service) -> None:
        with pytest.raises(BillingValidationError):
            await service.create_product("Broken", Decimal("-1"), 1)

    @pytest.mark.asyncio
    async def test_update_product_keeps_stock(self, service, catalog) -> None:
        product = await service.update_product(catalog.desk.id, name="HP Desk")
        assert product.name == "HP Desk"
        assert product.quantity_in_stock == 10

    @pytest.mark.asyncio
    async def test_update_missing_product(self, service) -> None:
        with pytest.raises(ProductNotFoundError):
            await service.update_product("ghost", name="x")

    @pytest.mark.asyncio
    async def test_get_missing_customer(self, service) -> None:
        with pytest.raises(CustomerNotFoundError):
            await service.get_customer(3)


class TestMoneyPrecision:
    """Prices must round-trip exactly on every backend."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("price", ["10.005", "0.001", "12345678901", "99999999999.99"])
    async def test_create_rejects_unstorable_price(self, service, price: str) -> None:
        with pytest.raises(BillingValidationError) as info:
            await service.create_product("Desk", Decimal(price), 1)
        assert info.value.field == "unit_price"
        assert await service.list_products() == []

    @pytest.mark.asyncio
    async def test_update_rejects_third_decimal(self, service, catalog) -> None:
        with pytest.raises(BillingValidationError):
            await service.update_product(catalog.desk.id, unit_price=Decimal("10.005"))
        assert (await service.get_product(catalog.desk.id)).unit_price == Decimal("10.00")

    @pytest.mark.asyncio
    async def test_price_round_trips_into_totals(self, service, catalog) -> None:
        created = await service.create_product("Desk", Decimal("10.5"), 5)
        assert created.unit_price == Decimal("10.50")
        assert str(created.unit_price) == "10.50"

        loaded = await service.get_product(created.id)
        assert loaded.unit_price == created.unit_price

        item = await service.add_item(catalog.bill.id, created.id, 2)
        assert item.unit_price == Decimal("10.50")
        assert await service.bill_total(catalog.bill.id) == Decimal("21.00")

    @pytest.mark.asyncio
    async def test_largest_storable_price(self, service) -> None:
        product = await service.create_product("Yacht", Decimal("9999999999.99"), 1)
        assert (await service.get_product(product.id)).unit_price == Decimal("9999999999.99")


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_not_initialised(self) -> None:
        svc = BillingService(BillingConfig())
        with pytest.raises(RuntimeError):
            await svc.list_bills()

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self) -> None:
        store = InMemoryBillingStore()
        svc = BillingService(BillingConfig(), store=store)
        await svc.initialize()
        await svc.initialize()
        assert svc.initialized
        await svc.shutdown()
        assert not svc.initialized

    @pytest.mark.asyncio
    async def test_sqlalchemy_backend_from_config(self) -> None:
        config = BillingConfig(
            storage_backend="sqlalchemy",
            database_url="sqlite+aiosqlite:///:memory:",
        )
        async with BillingService(config) as svc:
            customer = await svc.create_customer("Hassan", "hassan@gmail.com")
            assert (await svc.get_customer(customer.id)).name == "Hassan"

    @pytest.mark.asyncio
    async def test_seed_demo_data(self, store) -> None:
        config = BillingConfig(seed_demo_data=True)
        async with BillingService(config, store=store) as svc:
            customers = await svc.list_customers()
            assert [c.name for c in customers] == ["Hassan", "Fadwa", "Marwan"]
            products = {p.name: p for p in await svc.list_products()}
            # One unit of each product on one bill per customer.
            assert products["MacBook Pro Lap Top"].quantity_in_stock == 1
            assert products["Printer Epson"].quantity_in_stock == 27
            assert products["Computer Desk Top HP"].quantity_in_stock == 9
            bills = await svc.list_bills()
            assert len(bills) == 3
            assert await svc.bill_total(bills[0].id) == Decimal("10300")

            # A second start does not seed again.
            await svc._seed_demo_data()
            assert len(await svc.list_customers()) == 3

    @pytest.mark.asyncio
    async def test_health_check(self, service) -> None:
        report = await service.health_check()
        assert report["status"] == "healthy"
        assert report["components"]["store"]["product_count"] == 0
