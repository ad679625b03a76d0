"""Checkout order endpoint."""

from typing import Literal
from pydantic import BaseModel, Field
from fastapi import APIRouter, Depends

from ..config import get_settings
from ..dependencies import record_store
from ..services.orders import Customer, OrderRequest, create_order
from ..services.store import RecordStore
from .blog import single_task_response

router = APIRouter(tags=["orders"])


class CustomerModel(BaseModel):
    email: str = Field(..., min_length=3)
    first_name: str
    last_name: str
    phone: str = ""
    address: str = ""
    city: str = ""
    postal_code: str = ""
    country: str = ""


class OrderModel(BaseModel):
    """Request to place the order for a cart."""
    order_number: str = Field(..., min_length=1)
    cart_id: str = Field(..., min_length=1)
    customer: CustomerModel
    shipping_method: Literal["standard", "express"] = "standard"
    payment_method: str = "card"


@router.post("/orders")
async def place_order(request: OrderModel, store: RecordStore = Depends(record_store)):
    """Create the order on the cart's shop and mark the cart converted."""
    settings = get_settings()
    order = OrderRequest(
        order_number=request.order_number,
        cart_id=request.cart_id,
        customer=Customer(**request.model_dump()["customer"]),
        shipping_method=request.shipping_method,
        payment_method=request.payment_method,
    )
    run = await create_order(
        store,
        order,
        api_version=settings.shopify_api_version,
        timeout=settings.external_call_timeout,
        secrets=settings.secrets(),
    )
    response = single_task_response(run)
    response.update(response.pop("result"))
    return response
