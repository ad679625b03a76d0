"""Checkout: turn a shopping cart into an order on the seller's shop."""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ..pipeline import (
    InputValidationError,
    PipelineRun,
    PipelineStep,
    run_pipeline,
)
from .shopify import ShopifyClient
from .store import RecordStore

logger = logging.getLogger(__name__)

# method -> (price, title)
SHIPPING_RATES = {
    "standard": ("5.99", "Standard shipping (3-5 days)"),
    "express": ("12.99", "Express shipping (1-2 days)"),
}
ORDER_TAGS = "omniachat, ai-assisted"


@dataclass
class Customer:
    email: str
    first_name: str
    last_name: str
    phone: str = ""
    address: str = ""
    city: str = ""
    postal_code: str = ""
    country: str = ""

    def address_block(self) -> dict:
        return {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "address1": self.address,
            "city": self.city,
            "zip": self.postal_code,
            "country": self.country,
            "phone": self.phone,
        }


@dataclass
class OrderRequest:
    order_number: str
    cart_id: str
    customer: Customer
    shipping_method: str = "standard"
    payment_method: str = "card"


def line_item(cart_item: dict) -> dict:
    snapshot = cart_item.get("product_snapshot") or {}
    return {
        "title": snapshot.get("title") or "Product",
        "quantity": cart_item.get("quantity") or 1,
        "price": str(cart_item.get("unit_price") or 0),
    }


def build_order(request: OrderRequest, cart_items: list[dict]) -> dict:
    """Shopify order payload for a cart."""
    price, title = SHIPPING_RATES[request.shipping_method]
    customer = request.customer
    return {
        "email": customer.email,
        "line_items": [line_item(i) for i in cart_items],
        "customer": {
            "first_name": customer.first_name,
            "last_name": customer.last_name,
            "email": customer.email,
            "phone": customer.phone,
        },
        "billing_address": customer.address_block(),
        "shipping_address": customer.address_block(),
        "shipping_lines": [{"title": title, "price": price, "code": request.shipping_method}],
        "financial_status": "pending",
        "note": f"Omnia order {request.order_number} - payment method: {request.payment_method}",
        "tags": ORDER_TAGS,
    }


class OrderStep(PipelineStep):
    """Create one order and mark its cart converted."""

    name = "orders"

    def __init__(
        self,
        store: RecordStore,
        api_version: str = "2024-01",
        client_factory: Callable[..., ShopifyClient] = ShopifyClient,
        secrets=(),
    ):
        self.store = store
        self.api_version = api_version
        self.client_factory = client_factory
        self.secrets = secrets

    def task_id(self, item: OrderRequest) -> str:
        return item.order_number

    async def _client(self, store_id: Any) -> Optional[ShopifyClient]:
        if not store_id:
            return None
        shops = await self.store.fetch("shopify_stores", {"id": store_id}, limit=1)
        if not shops or not shops[0].get("store_url") or not shops[0].get("api_token"):
            logger.info("Store %s has no Shopify credentials, keeping order local", store_id)
            return None
        shop = shops[0]
        return self.client_factory(shop["store_url"], shop["api_token"], api_version=self.api_version)

    async def build_request(self, item: OrderRequest) -> dict:
        if item.shipping_method not in SHIPPING_RATES:
            raise InputValidationError(f"Unknown shipping method: {item.shipping_method}")
        cart = await self.store.fetch_one("shopping_carts", item.cart_id)
        cart_items = await self.store.fetch("cart_items", {"cart_id": item.cart_id})
        if not cart_items:
            raise InputValidationError("Cart is empty")
        return {
            "client": await self._client(cart.get("store_id")),
            "order": build_order(item, cart_items),
        }

    async def invoke(self, request: dict) -> Optional[dict]:
        client: Optional[ShopifyClient] = request["client"]
        if client is None:
            return None
        return await client.create_order(request["order"])

    async def persist(self, item: OrderRequest, response: Optional[dict]) -> dict:
        shopify_order_id = response["id"] if response else None
        await self.store.update("shopping_carts", item.cart_id, {"status": "converted"})
        logger.info("Order %s created (Shopify order %s)", item.order_number, shopify_order_id)
        return {"order_number": item.order_number, "shopify_order_id": shopify_order_id}


async def create_order(
    store: RecordStore,
    request: OrderRequest,
    api_version: str = "2024-01",
    timeout: float = 30.0,
    client_factory: Callable[..., ShopifyClient] = ShopifyClient,
    secrets=(),
) -> PipelineRun:
    step = OrderStep(store, api_version=api_version, client_factory=client_factory, secrets=secrets)
    return await run_pipeline(step, [request], limit=1, timeout=timeout)
