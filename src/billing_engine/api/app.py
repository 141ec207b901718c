"""FastAPI application factory for the billing API."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from billing_engine.api.errors import register_exception_handlers
from billing_engine.api.routes import router
from billing_engine.core.config import BillingConfig
from billing_engine.service import BillingService

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


def create_app(
    config: BillingConfig | None = None,
    *,
    service: BillingService | None = None,
) -> FastAPI:
    """Build the billing application.

    Without *service* the app owns one through
    :meth:`BillingService.create_lifespan`.  A pre-built *service* is put on
    ``app.state`` right away (the lifespan still initialises and shuts it
    down), which lets tests drive the app through an ASGI transport that
    does not run lifespans.

    Example:
        ```python
        app = create_app(BillingConfig(storage_backend="sqlalchemy",
                                       database_url="sqlite+aiosqlite:///./billing.db"))
        ```
    """
    from billing_engine import __version__

    if config is None:
        config = service.config if service is not None else BillingConfig()

    if service is None:
        lifespan = BillingService.create_lifespan(config)
    else:
        owned = service

        @asynccontextmanager
        async def lifespan(app: FastAPI) -> AsyncIterator[None]:
            await owned.initialize()
            try:
                yield
            finally:
                await owned.shutdown()

    app = FastAPI(
        title="billing-engine",
        description="Bills, line items and inventory with consistent stock accounting",
        version=__version__,
        lifespan=lifespan,
    )
    if service is not None:
        app.state.billing_service = service

    register_exception_handlers(app, debug=config.debug_errors)
    app.include_router(router, prefix=config.api_prefix)
    logger.info("Billing API created prefix=%r", config.api_prefix)
    return app


__all__ = ["create_app"]
