"""Utility functions and helpers."""

from billing_engine.utils.db_compat import DbDialect, detect_dialect, requires_static_pool
from billing_engine.utils.validation import (
    require_money,
    require_positive_quantity,
    validate_email,
    validate_product_id,
)

__all__ = [
    "DbDialect",
    "detect_dialect",
    "require_money",
    "require_positive_quantity",
    "requires_static_pool",
    "validate_email",
    "validate_product_id",
]
