"""Core types and domain models for billing-engine.

Every model is frozen: use ``model_copy(update={...})`` to derive a modified
version.  Storage backends hand these out and never share mutable state with
callers.
"""
from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class StorageBackend(StrEnum):
    """Persistence backend used by the billing service."""
    MEMORY = "memory"
    SQLALCHEMY = "sqlalchemy"


def as_utc(value: datetime) -> datetime:
    """Return *value* in UTC.  Naive timestamps (SQLite drops tzinfo) are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class Customer(BaseModel):
    """A customer record owned by the customer directory."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Customer identifier")
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255)


class Product(BaseModel):
    """Catalog product with its current price and stock level.

    ``quantity_in_stock`` is only ever changed through the
    :class:`~billing_engine.ledger.InventoryLedger`.
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "examples": [
                {
                    "id": "2f7c1c9e-7d7b-4f1e-9c4a-0d5f1c2b3a4d",
                    "name": "Printer Epson",
                    "unit_price": "1000.00",
                    "quantity_in_stock": 30,
                }
            ]
        },
    )

    id: str = Field(..., min_length=1, max_length=64, description="Opaque product identifier")
    name: str = Field(..., min_length=1, max_length=255)
    unit_price: Decimal = Field(..., ge=0, description="Current catalog price")
    quantity_in_stock: int = Field(..., ge=0, description="Units available for reservation")


class Bill(BaseModel):
    """Bill header.  Items live in :class:`LineItem` records; totals are derived."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Bill identifier")
    customer_id: int = Field(..., description="Customer the bill belongs to")
    billing_date: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Billing timestamp (UTC)",
    )

    @field_validator("billing_date")
    @classmethod
    def normalise_billing_date(cls, v: datetime) -> datetime:
        return as_utc(v)


class LineItem(BaseModel):
    """A product line on a bill.

    ``unit_price`` is the product price captured when the item was created
    and is never rewritten afterwards.
    """

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Line item identifier")
    bill_id: int = Field(..., description="Owning bill")
    product_id: str = Field(..., min_length=1, max_length=64)
    quantity: int = Field(..., ge=1, description="Units reserved for this line")
    unit_price: Decimal = Field(..., ge=0, description="Price snapshot at creation")

    @property
    def subtotal(self) -> Decimal:
        return self.quantity * self.unit_price


class LineItemDetails(BaseModel):
    """A line item together with the live catalog view of its product."""

    model_config = ConfigDict(frozen=True)

    item: LineItem
    product: Product | None = None


class BillDetails(BaseModel):
    """Read model for ``GET /bills/{id}/full``."""

    model_config = ConfigDict(frozen=True)

    bill: Bill
    customer: Customer | None = None
    items: list[LineItemDetails] = Field(default_factory=list)
    total: Decimal = Field(default=Decimal("0.00"))


__all__ = [
    "Bill",
    "BillDetails",
    "Customer",
    "LineItem",
    "LineItemDetails",
    "Product",
    "StorageBackend",
    "as_utc",
]
