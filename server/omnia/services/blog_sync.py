"""Publish stored blog articles to the owning Shopify store."""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from ..pipeline import (
    ExternalCallError,
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

# Task status -> blog_articles.sync_status
SYNC_STATUS = {
    TaskStatus.IN_PROGRESS: "syncing",
    TaskStatus.SUCCEEDED: "synced",
    TaskStatus.FAILED: "failed",
}


async def resolve_store_id(store: RecordStore, article: dict) -> Optional[str]:
    """Find the Shopify store an article belongs to.

    Order: the article's own store_id, its campaign's store_id, then the
    store of its first related product.
    """
    if article.get("store_id"):
        return article["store_id"]

    if article.get("campaign_id"):
        campaigns = await store.fetch(
            "blog_campaigns", {"id": article["campaign_id"]}, columns="store_id", limit=1
        )
        if campaigns and campaigns[0].get("store_id"):
            return campaigns[0]["store_id"]

    related = article.get("related_product_ids") or []
    if related:
        products = await store.fetch(
            "shopify_products", {"id": related[0]}, columns="store_id", limit=1
        )
        if products and products[0].get("store_id"):
            return products[0]["store_id"]

    return None


def article_payload(article: dict) -> dict:
    """Shopify article body built from a blog_articles row."""
    tags = article.get("tags") or ", ".join(article.get("target_keywords") or [])
    return {
        "title": article.get("title"),
        "body_html": article.get("content"),
        "author": article.get("author") or "Admin",
        "tags": tags,
        "summary_html": article.get("excerpt") or None,
        "published": True,
    }


class BlogSyncStep(PipelineStep):
    """Create one article in Shopify and record the sync result."""

    name = "blog-sync"

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

    def task_id(self, item: Any) -> str:
        return str(item)

    async def build_request(self, item: Any) -> dict:
        article = await self.store.fetch_one("blog_articles", item)
        store_id = await resolve_store_id(self.store, article)
        if not store_id:
            raise InputValidationError(
                "No store found for this article. Please configure a Shopify store first."
            )
        client = await client_for_store(
            self.store, store_id, self.api_version, self.client_factory
        )
        return {"client": client, "article": article}

    async def invoke(self, request: dict) -> dict:
        client: ShopifyClient = request["client"]
        blogs = await client.list_blogs()
        if not blogs:
            raise ExternalCallError("No blog found in Shopify store")
        blog_id = blogs[0]["id"]
        created = await client.create_article(blog_id, article_payload(request["article"]))
        return {"blog_id": blog_id, "article_id": created["id"]}

    async def persist(self, item: Any, response: dict) -> dict:
        return {
            "shopify_blog_id": response["blog_id"],
            "shopify_article_id": response["article_id"],
        }

    async def record_status(self, task: PipelineTask) -> None:
        fields: dict[str, Any] = {"sync_status": SYNC_STATUS[task.status]}
        if task.status == TaskStatus.SUCCEEDED:
            fields.update(task.result)
            fields["last_synced_at"] = datetime.now(timezone.utc).isoformat()
            fields["sync_error"] = ""
        elif task.status == TaskStatus.FAILED:
            fields["sync_error"] = task.error_detail
        await self.store.update("blog_articles", task.id, fields)


async def sync_articles(
    store: RecordStore,
    article_ids: list,
    api_version: str = "2024-01",
    timeout: float = 30.0,
    client_factory: Callable[..., ShopifyClient] = ShopifyClient,
    secrets=(),
) -> PipelineRun:
    """Sync each article independently; one failure does not stop the rest."""
    if not article_ids:
        raise InputValidationError("Article ID is required")
    step = BlogSyncStep(store, api_version=api_version, client_factory=client_factory, secrets=secrets)
    return await run_pipeline(step, article_ids, timeout=timeout)
