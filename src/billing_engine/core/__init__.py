"""Core billing components and abstractions."""

from billing_engine.core.config import BillingConfig
from billing_engine.core.exceptions import *  # noqa: F403
from billing_engine.core.exceptions import __all__ as exceptions__all__
from billing_engine.core.types import *  # noqa: F403
from billing_engine.core.types import __all__ as types__all__

__all__ = ["BillingConfig"]

__all__ += exceptions__all__
__all__ += types__all__
