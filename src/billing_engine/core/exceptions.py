"""Custom exceptions for billing-engine.

All exceptions derive from :class:`BillingError` so callers can catch the
entire family with a single ``except BillingError`` clause.

Hierarchy::

    BillingError
    ├── BillingValidationError
    ├── NotFoundError
    │   ├── CustomerNotFoundError
    │   ├── ProductNotFoundError
    │   ├── BillNotFoundError
    │   └── LineItemNotFoundError
    ├── InsufficientStockError
    ├── ConcurrentModificationError
    └── StorageError

Only :class:`InsufficientStockError` and :class:`ConcurrentModificationError`
can be raised after the ledger has been touched; the transaction scope in
:mod:`billing_engine.storage` rolls those reservations back.
"""

from __future__ import annotations

from typing import Any


class BillingError(Exception):
    """Base exception for all billing-engine errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details: dict[str, Any] = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | details={self.details}"
        return self.message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r})"


class BillingValidationError(BillingError):
    """Raised for malformed input (non-positive quantity, missing field).

    Always raised before the inventory ledger is touched.
    """

    def __init__(
        self,
        field: str,
        reason: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(f"Invalid value for {field!r}: {reason}", details)
        self.field = field
        self.reason = reason


class NotFoundError(BillingError):
    """Raised when a referenced record does not exist."""

    resource = "record"

    def __init__(
        self,
        identifier: int | str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        label = self.resource.capitalize()
        if identifier is not None:
            message = f"{label} not found: {identifier!r}"
        else:
            message = f"{label} not found"
        super().__init__(message, details)
        self.identifier = identifier


class CustomerNotFoundError(NotFoundError):
    """Raised when a bill references a customer that does not exist."""

    resource = "customer"


class ProductNotFoundError(NotFoundError):
    """Raised when a product cannot be located in the catalog."""

    resource = "product"


class BillNotFoundError(NotFoundError):
    """Raised when a bill does not exist (or was deleted mid-operation)."""

    resource = "bill"


class LineItemNotFoundError(NotFoundError):
    """Raised when a line item does not exist."""

    resource = "line item"


class InsufficientStockError(BillingError):
    """Raised when the ledger refuses a reservation."""

    def __init__(
        self,
        product_id: str,
        requested: int,
        available: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        message = f"Insufficient stock for product {product_id!r}: requested {requested}"
        if available is not None:
            message += f", available {available}"
        super().__init__(message, details)
        self.product_id = product_id
        self.requested = requested
        self.available = available


class ConcurrentModificationError(BillingError):
    """Raised when a line item changed underneath an update."""

    def __init__(
        self,
        item_id: int,
        expected_quantity: int,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            f"Line item {item_id} was modified concurrently "
            f"(expected quantity {expected_quantity})",
            details,
        )
        self.item_id = item_id
        self.expected_quantity = expected_quantity


class StorageError(BillingError):
    """Raised when the storage backend fails unexpectedly."""

    def __init__(
        self,
        operation: str,
        reason: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(f"Storage operation {operation!r} failed: {reason}", details)
        self.operation = operation
        self.reason = reason


__all__ = [
    "BillNotFoundError",
    "BillingError",
    "BillingValidationError",
    "ConcurrentModificationError",
    "CustomerNotFoundError",
    "InsufficientStockError",
    "LineItemNotFoundError",
    "NotFoundError",
    "ProductNotFoundError",
    "StorageError",
]
