"""HTTP surface: FastAPI router, schemas, error handlers and app factory."""

from billing_engine.api.app import create_app
from billing_engine.api.dependencies import BillingServiceDep, get_billing_service
from billing_engine.api.errors import register_exception_handlers
from billing_engine.api.routes import router

__all__ = [
    "BillingServiceDep",
    "create_app",
    "get_billing_service",
    "register_exception_handlers",
    "router",
]
