"""Minimal Shopify Admin REST client."""

import re
from typing import Any, Callable, Optional

import httpx

from ..pipeline.errors import ExternalCallError, InputValidationError, redact


def normalize_store_url(url: str) -> str:
    """Strip scheme and trailing slash from a shop domain."""
    if not url:
        return ""
    url = re.sub(r"^https?://", "", url.strip())
    return url.rstrip("/")


class ShopifyClient:
    """Talk to one shop's Admin API with its access token."""

    def __init__(
        self,
        store_url: str,
        access_token: str,
        api_version: str = "2024-01",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.domain = normalize_store_url(store_url)
        self.access_token = access_token
        self.api_version = api_version
        self.timeout = timeout
        self._transport = transport

    @property
    def base_url(self) -> str:
        return f"https://{self.domain}/admin/api/{self.api_version}"

    async def _request(self, method: str, path: str, json: Any = None) -> dict:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(
                    method,
                    f"{self.base_url}/{path}",
                    json=json,
                    headers={
                        "Content-Type": "application/json",
                        "X-Shopify-Access-Token": self.access_token,
                    },
                )
        except httpx.TimeoutException:
            raise ExternalCallError(f"Shopify request to {self.domain} timed out")
        except httpx.HTTPError as e:
            raise ExternalCallError(
                redact(f"Shopify request failed: {e}", [self.access_token])
            )

        if response.status_code >= 400:
            raise ExternalCallError(
                redact(f"Shopify API error on {path}: {response.text[:200]}", [self.access_token]),
                status=response.status_code,
            )

        try:
            return response.json()
        except ValueError:
            raise ExternalCallError(f"Shopify returned a non-JSON body for {path}")

    async def list_blogs(self) -> list[dict]:
        data = await self._request("GET", "blogs.json")
        return data.get("blogs") or []

    async def create_article(self, blog_id: Any, article: dict) -> dict:
        data = await self._request(
            "POST", f"blogs/{blog_id}/articles.json", json={"article": article}
        )
        created = data.get("article")
        if not created or created.get("id") is None:
            raise ExternalCallError("Shopify did not return the created article")
        return created

    async def list_product_metafields(self, product_id: Any) -> list[dict]:
        data = await self._request("GET", f"products/{product_id}/metafields.json")
        return data.get("metafields") or []

    async def set_product_metafield(
        self, product_id: Any, key: str, value: str, namespace: str = "global"
    ) -> dict:
        """Create the metafield, or overwrite it when the product already has one."""
        existing = next(
            (
                m for m in await self.list_product_metafields(product_id)
                if m.get("namespace") == namespace and m.get("key") == key
            ),
            None,
        )
        if existing:
            data = await self._request(
                "PUT",
                f"products/{product_id}/metafields/{existing['id']}.json",
                json={"metafield": {
                    "id": existing["id"], "value": value, "type": "single_line_text_field",
                }},
            )
        else:
            data = await self._request(
                "POST",
                f"products/{product_id}/metafields.json",
                json={"metafield": {
                    "namespace": namespace, "key": key, "value": value,
                    "type": "single_line_text_field",
                }},
            )
        return data.get("metafield") or {}

    async def update_product(self, product_id: Any, fields: dict) -> dict:
        data = await self._request(
            "PUT", f"products/{product_id}.json", json={"product": {"id": product_id, **fields}}
        )
        return data.get("product") or {}

    async def create_order(self, order: dict) -> dict:
        data = await self._request("POST", "orders.json", json={"order": order})
        created = data.get("order")
        if not created or created.get("id") is None:
            raise ExternalCallError("Shopify did not return the created order")
        return created


async def client_for_store(
    store: Any,
    store_id: Any,
    api_version: str = "2024-01",
    client_factory: Callable[..., ShopifyClient] = ShopifyClient,
) -> ShopifyClient:
    """Build a client from a shopify_stores row; missing credentials are a validation error."""
    shop = await store.fetch_one("shopify_stores", store_id)
    if not shop.get("store_url") or not shop.get("api_token"):
        raise InputValidationError(f"store {store_id} has no Shopify credentials")
    return client_factory(shop["store_url"], shop["api_token"], api_version=api_version)
