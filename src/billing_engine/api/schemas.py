"""Pydantic request/response schemas for the billing API.

Field names are camelCase on the wire (``customerId``, ``unitPrice``) and
snake_case in Python.  Decimals are serialised as strings.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from billing_engine.core.types import BillDetails, LineItemDetails


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ── Customers ─────────────────────────────────────────────────────────────────

class CustomerCreate(ApiModel):
    name:  str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255)


class CustomerRead(ApiModel):
    id:    int
    name:  str
    email: str


# ── Products ──────────────────────────────────────────────────────────────────

class ProductCreate(ApiModel):
    id:                str | None = Field(default=None, max_length=64)
    name:              str = Field(..., min_length=1, max_length=255)
    unit_price:        Decimal
    quantity_in_stock: int = 0


class ProductUpdate(ApiModel):
    name:       str | None = Field(default=None, max_length=255)
    unit_price: Decimal | None = None


class ProductRead(ApiModel):
    id:                str
    name:              str
    unit_price:        Decimal
    quantity_in_stock: int


class RestockRequest(ApiModel):
    delta: int


class AvailabilityRead(ApiModel):
    product_id: str
    quantity:   int
    available:  bool


# ── Bills ─────────────────────────────────────────────────────────────────────

class BillCreate(ApiModel):
    customer_id:  int
    billing_date: datetime | None = None


class BillUpdate(ApiModel):
    customer_id:  int
    billing_date: datetime | None = None


class BillRead(ApiModel):
    id:           int
    customer_id:  int
    billing_date: datetime


# ── Line items ────────────────────────────────────────────────────────────────

class LineItemCreate(ApiModel):
    bill_id:    int
    product_id: str = Field(..., min_length=1, max_length=64)
    # Range is checked by the service so it reports validation_error uniformly.
    quantity:   int


class LineItemQuantityUpdate(ApiModel):
    quantity: int


class LineItemRead(ApiModel):
    id:         int
    bill_id:    int
    product_id: str
    quantity:   int
    unit_price: Decimal


class LineItemDetailRead(LineItemRead):
    product: ProductRead | None = None

    @classmethod
    def from_domain(cls, line: LineItemDetails) -> LineItemDetailRead:
        return cls(
            **LineItemRead.model_validate(line.item).model_dump(),
            product=ProductRead.model_validate(line.product) if line.product else None,
        )


class BillDetailRead(BillRead):
    customer: CustomerRead | None = None
    items:    list[LineItemDetailRead] = Field(default_factory=list)
    total:    Decimal

    @classmethod
    def from_domain(cls, details: BillDetails) -> BillDetailRead:
        return cls(
            **BillRead.model_validate(details.bill).model_dump(),
            customer=(
                CustomerRead.model_validate(details.customer) if details.customer else None
            ),
            items=[LineItemDetailRead.from_domain(line) for line in details.items],
            total=details.total,
        )


__all__ = [
    "AvailabilityRead",
    "BillCreate",
    "BillDetailRead",
    "BillRead",
    "BillUpdate",
    "CustomerCreate",
    "CustomerRead",
    "LineItemCreate",
    "LineItemDetailRead",
    "LineItemQuantityUpdate",
    "LineItemRead",
    "ProductCreate",
    "ProductRead",
    "ProductUpdate",
    "RestockRequest",
]
