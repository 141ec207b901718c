"""FastAPI dependency-injection helpers for the billing API."""
from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from billing_engine.service import BillingService


def get_billing_service(request: Request) -> BillingService:
    """Return the :class:`BillingService` stored on ``app.state``.

    Example
    -------
    .. code-block:: python

        @router.get("/bills")
        async def list_bills(service: BillingServiceDep):
            return await service.list_bills()
    """
    service = getattr(request.app.state, "billing_service", None)
    if service is None:
        raise RuntimeError(
            "billing_service not found on app.state. "
            "Did you forget to use BillingService.create_lifespan()?"
        )
    return service


BillingServiceDep = Annotated[BillingService, Depends(get_billing_service)]


__all__ = ["BillingServiceDep", "get_billing_service"]
