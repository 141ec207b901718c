"""Bill, line item, customer and product API routes.

Routes are thin: every handler makes one :class:`BillingService` call, so
each request is exactly one store transaction.  Errors are raised as
billing exceptions and rendered by :mod:`billing_engine.api.errors`.
"""
from __future__ import annotations

from fastapi import APIRouter, Query, Response, status
from fastapi.responses import JSONResponse

from billing_engine.api.dependencies import BillingServiceDep
from billing_engine.api.schemas import (
    AvailabilityRead,
    BillCreate,
    BillDetailRead,
    BillRead,
    BillUpdate,
    CustomerCreate,
    CustomerRead,
    LineItemCreate,
    LineItemQuantityUpdate,
    LineItemRead,
    ProductCreate,
    ProductRead,
    ProductUpdate,
    RestockRequest,
)

router = APIRouter()


@router.get("/health")
async def health(service: BillingServiceDep):
    """Health check for the billing store."""
    report = await service.health_check()
    healthy = report["status"] == "healthy"
    code = status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=code, content=report)


# ── Bills ─────────────────────────────────────────────────────────────────────

@router.post("/bills", response_model=BillRead, status_code=status.HTTP_201_CREATED)
async def create_bill(body: BillCreate, service: BillingServiceDep):
    """Create an empty bill for an existing customer."""
    bill = await service.create_bill(body.customer_id, body.billing_date)
    return BillRead.model_validate(bill)


@router.get("/bills", response_model=list[BillRead])
async def list_bills(service: BillingServiceDep):
    return [BillRead.model_validate(b) for b in await service.list_bills()]


@router.get("/bills/{bill_id}", response_model=BillRead)
async def get_bill(bill_id: int, service: BillingServiceDep):
    return BillRead.model_validate(await service.get_bill(bill_id))


@router.put("/bills/{bill_id}", response_model=BillRead)
async def update_bill(bill_id: int, body: BillUpdate, service: BillingServiceDep):
    """Change the customer and/or date of a bill.  Line items are untouched."""
    bill = await service.update_bill(bill_id, body.customer_id, body.billing_date)
    return BillRead.model_validate(bill)


@router.delete(
    "/bills/{bill_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def delete_bill(bill_id: int, service: BillingServiceDep) -> None:
    """Delete a bill, returning every line item's stock to inventory."""
    await service.delete_bill(bill_id)


@router.get("/bills/{bill_id}/full", response_model=BillDetailRead)
async def get_bill_details(bill_id: int, service: BillingServiceDep):
    """Bill with customer, line items (with live product data) and total."""
    return BillDetailRead.from_domain(await service.get_bill_details(bill_id))


@router.get("/bills/{bill_id}/items", response_model=list[LineItemRead])
async def list_bill_items(bill_id: int, service: BillingServiceDep):
    return [LineItemRead.model_validate(i) for i in await service.list_items(bill_id)]


# ── Line items ────────────────────────────────────────────────────────────────

@router.post("/line-items", response_model=LineItemRead, status_code=status.HTTP_201_CREATED)
async def add_line_item(body: LineItemCreate, service: BillingServiceDep):
    """Reserve stock and add a line to a bill at the product's current price."""
    item = await service.add_item(body.bill_id, body.product_id, body.quantity)
    return LineItemRead.model_validate(item)


@router.get("/line-items/{item_id}", response_model=LineItemRead)
async def get_line_item(item_id: int, service: BillingServiceDep):
    return LineItemRead.model_validate(await service.get_item(item_id))


@router.patch("/line-items/{item_id}", response_model=LineItemRead)
async def update_line_item(
    item_id: int, body: LineItemQuantityUpdate, service: BillingServiceDep
):
    """Change a line's quantity, reserving or releasing the difference."""
    item = await service.update_item_quantity(item_id, body.quantity)
    return LineItemRead.model_validate(item)


@router.delete(
    "/line-items/{item_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def remove_line_item(item_id: int, service: BillingServiceDep) -> None:
    await service.remove_item(item_id)


# ── Customers ─────────────────────────────────────────────────────────────────

@router.post("/customers", response_model=CustomerRead, status_code=status.HTTP_201_CREATED)
async def create_customer(body: CustomerCreate, service: BillingServiceDep):
    customer = await service.create_customer(body.name, body.email)
    return CustomerRead.model_validate(customer)


@router.get("/customers", response_model=list[CustomerRead])
async def list_customers(service: BillingServiceDep):
    return [CustomerRead.model_validate(c) for c in await service.list_customers()]


@router.get("/customers/{customer_id}", response_model=CustomerRead)
async def get_customer(customer_id: int, service: BillingServiceDep):
    return CustomerRead.model_validate(await service.get_customer(customer_id))


# ── Products ──────────────────────────────────────────────────────────────────

@router.post("/products", response_model=ProductRead, status_code=status.HTTP_201_CREATED)
async def create_product(body: ProductCreate, service: BillingServiceDep):
    product = await service.create_product(
        body.name, body.unit_price, body.quantity_in_stock, product_id=body.id
    )
    return ProductRead.model_validate(product)


@router.get("/products", response_model=list[ProductRead])
async def list_products(service: BillingServiceDep):
    return [ProductRead.model_validate(p) for p in await service.list_products()]


@router.get("/products/{product_id}", response_model=ProductRead)
async def get_product(product_id: str, service: BillingServiceDep):
    return ProductRead.model_validate(await service.get_product(product_id))


@router.patch("/products/{product_id}", response_model=ProductRead)
async def update_product(product_id: str, body: ProductUpdate, service: BillingServiceDep):
    """Rename or re-price a product.  Existing line items keep their price."""
    product = await service.update_product(
        product_id, name=body.name, unit_price=body.unit_price
    )
    return ProductRead.model_validate(product)


@router.get("/products/{product_id}/availability", response_model=AvailabilityRead)
async def check_availability(
    product_id: str,
    service: BillingServiceDep,
    quantity: int = Query(..., description="Units wanted"),
):
    available = await service.check_availability(product_id, quantity)
    return AvailabilityRead(product_id=product_id, quantity=quantity, available=available)


@router.post("/products/{product_id}/restock", response_model=ProductRead)
async def restock_product(product_id: str, body: RestockRequest, service: BillingServiceDep):
    """Administrative stock change by ``delta`` (negative values remove stock)."""
    product = await service.restock_product(product_id, body.delta)
    return ProductRead.model_validate(product)


__all__ = ["router"]
