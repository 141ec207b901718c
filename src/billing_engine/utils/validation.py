"""Input validation for billing operations.

Every check here runs *before* the inventory ledger is touched, so a
rejected request never leaves a reservation behind.
"""
from __future__ import annotations

import re
from decimal import Decimal

from billing_engine.core.exceptions import BillingValidationError

_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}$")
_PRODUCT_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_\-]{0,63}$")

_MAX_EMAIL_INPUT = 255  # hard cap before regex

# Matches the Numeric(12, 2) money columns.
MONEY_INTEGER_DIGITS = 10
_CENT = Decimal("0.01")


def validate_email(email: str) -> bool:
    """Return True if email has a valid format."""
    if not email or not isinstance(email, str):
        return False
    if len(email) > _MAX_EMAIL_INPUT:
        return False
    return bool(_EMAIL_RE.match(email))


def validate_product_id(product_id: str) -> bool:
    """Return True for an opaque product id (UUID4 strings included).

    >>> validate_product_id("2f7c1c9e-7d7b-4f1e-9c4a-0d5f1c2b3a4d")
    True
    >>> validate_product_id("../etc")
    False
    """
    if not product_id or not isinstance(product_id, str):
        return False
    return bool(_PRODUCT_ID_RE.match(product_id))


def require_positive_quantity(quantity: int, field: str = "quantity") -> int:
    """Return *quantity* or raise :class:`BillingValidationError` if it is below 1."""
    # bool is an int subclass; True is not a quantity
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise BillingValidationError(field, "must be an integer", {field: quantity})
    if quantity < 1:
        raise BillingValidationError(field, "must be at least 1", {field: quantity})
    return quantity


def require_money(value: Decimal, field: str = "unit_price") -> Decimal:
    """Return *value* at two decimal places or raise :class:`BillingValidationError`.

    Amounts must be finite, non-negative, have at most two decimal places and
    at most ten integer digits, so every backend stores them exactly.

    >>> require_money(Decimal("7.5"))
    Decimal('7.50')
    """
    if not isinstance(value, Decimal) or not value.is_finite():
        raise BillingValidationError(field, "must be a finite decimal", {field: value})
    if value < 0:
        raise BillingValidationError(field, "must not be negative", {field: value})
    if value and value.adjusted() >= MONEY_INTEGER_DIGITS:
        raise BillingValidationError(
            field, f"must have at most {MONEY_INTEGER_DIGITS} integer digits", {field: value}
        )
    cents = value.quantize(_CENT)
    if cents != value:
        raise BillingValidationError(field, "must have at most 2 decimal places", {field: value})
    return cents


__all__ = [
    "MONEY_INTEGER_DIGITS",
    "require_money",
    "require_positive_quantity",
    "validate_email",
    "validate_product_id",
]
