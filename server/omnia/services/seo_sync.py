"""Push product SEO fields and tags to Shopify."""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from ..pipeline import (
    InputValidationError,
    PipelineRun,
    PipelineStep,
    PipelineTask,
    TaskStatus,
    run_pipeline,
)
from .shopify import ShopifyClient, client_for_store
from .store import RecordStore

logger = logging.getLogger(__name__)

PRODUCT_COLUMNS = "id, shopify_id, seo_title, seo_description, tags, store_id"

# shopify_products column -> Shopify "global" metafield key
SEO_METAFIELDS = (
    ("seo_title", "title_tag"),
    ("seo_description", "description_tag"),
)


class SeoSyncStep(PipelineStep):
    """Sync one product's SEO title, description and tags."""

    name = "seo-sync"

    def __init__(
        self,
        store: RecordStore,
        api_version: str = "2024-01",
        client_factory: Callable[..., ShopifyClient] = ShopifyClient,
        user_id: Optional[str] = None,
        secrets=(),
    ):
        self.store = store
        self.api_version = api_version
        self.client_factory = client_factory
        self.user_id = user_id
        self.secrets = secrets

    async def build_request(self, item: Any) -> dict:
        product = item if isinstance(item, dict) else await self.store.fetch_one(
            "shopify_products", item, columns=PRODUCT_COLUMNS
        )
        if not product.get("shopify_id"):
            raise InputValidationError(f"product {product['id']} is not linked to Shopify")
        if not product.get("store_id"):
            raise InputValidationError("Product has no associated store")

        client = await client_for_store(
            self.store, product["store_id"], self.api_version, self.client_factory
        )
        return {"client": client, "product": product}

    async def invoke(self, request: dict) -> dict:
        client: ShopifyClient = request["client"]
        product = request["product"]
        shopify_id = product["shopify_id"]

        synced = []
        for column, key in SEO_METAFIELDS:
            if product.get(column):
                await client.set_product_metafield(shopify_id, key, product[column])
                synced.append(column)

        tags = product.get("tags")
        if tags:
            if not isinstance(tags, str):
                tags = ", ".join(tags)
            await client.update_product(shopify_id, {"tags": tags})
            synced.append("tags")
        return {"product": product, "fields": synced}

    async def persist(self, item: Any, response: dict) -> dict:
        product = response["product"]
        product_id, fields = product["id"], response["fields"]
        await self.store.insert("seo_sync_logs", {
            "product_id": product_id,
            "store_id": product.get("store_id"),
            "sync_type": "manual" if self.user_id else "auto",
            "fields_synced": {"fields": fields},
            "status": "success",
            "synced_at": datetime.now(timezone.utc).isoformat(),
            "synced_by": self.user_id,
        })
        logger.info("Synced %s for product %s", ", ".join(fields) or "nothing", product_id)
        return {"product_id": product_id, "fields_synced": fields}

    async def record_status(self, task: PipelineTask) -> None:
        if task.status == TaskStatus.SUCCEEDED:
            fields = {
                "seo_synced_to_shopify": True,
                "last_seo_sync_at": datetime.now(timezone.utc).isoformat(),
                "seo_sync_error": "",
            }
        elif task.status == TaskStatus.FAILED:
            fields = {"seo_sync_error": task.error_detail}
        else:
            return
        await self.store.update("shopify_products", task.id, fields)


async def sync_product_seo(
    store: RecordStore,
    product_ids: Optional[list] = None,
    limit: int = 20,
    api_version: str = "2024-01",
    timeout: float = 30.0,
    client_factory: Callable[..., ShopifyClient] = ShopifyClient,
    user_id: Optional[str] = None,
    secrets=(),
) -> PipelineRun:
    """Sync the given products, or every product whose SEO changed since the last sync."""
    if product_ids is not None:
        if not product_ids:
            raise InputValidationError("Product ID is required")
        items = list(product_ids)
    else:
        items = await store.fetch(
            "shopify_products", {"seo_synced_to_shopify": False},
            columns=PRODUCT_COLUMNS, limit=limit,
        )
    step = SeoSyncStep(
        store, api_version=api_version, client_factory=client_factory,
        user_id=user_id, secrets=secrets,
    )
    return await run_pipeline(step, items, limit=limit, timeout=timeout)
