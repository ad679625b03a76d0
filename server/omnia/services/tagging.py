"""Product tag generation."""

import logging
from typing import Any, Optional, Union

from pydantic import BaseModel, field_validator

from ..pipeline import (
    InputValidationError,
    Persisted,
    PipelineRun,
    PipelineStep,
    run_pipeline,
)
from ..pipeline.parsing import parse_with_fallback
from .llm import complete
from .seo_opportunities import split_tags
from .store import RecordStore

logger = logging.getLogger(__name__)

PRODUCT_COLUMNS = (
    "id, title, description, product_type, vendor, category, sub_category, "
    "ai_color, ai_material, tags"
)
MAX_TAGS = 15

SYSTEM_PROMPT = (
    "You are a product tagging expert. Generate relevant, SEO-optimized tags. "
    "Always respond with valid JSON only."
)


class TagResponse(BaseModel):
    tags: Union[str, list[str]]

    @field_validator("tags")
    @classmethod
    def normalize(cls, value):
        parts = value.split(",") if isinstance(value, str) else value
        tags = []
        for part in parts:
            tag = str(part).strip().lower()
            if tag and tag not in tags:
                tags.append(tag)
        if not tags:
            raise ValueError("no tags")
        return ", ".join(tags[:MAX_TAGS])


def fallback_tags(product: dict) -> Optional[TagResponse]:
    """The product's own type or category, when it has one."""
    value = (product.get("product_type") or product.get("category") or "").strip()
    if not value:
        return None
    return TagResponse(tags=value)


def build_prompt(product: dict) -> str:
    def field(name):
        return product.get(name) or "Not specified"

    return f"""Generate SEO-optimized product tags for this item:

Product Information:
- Title: {product.get("title")}
- Description: {product.get("description") or "Not provided"}
- Type: {field("product_type")}
- Vendor: {field("vendor")}
- Category: {field("category")}
- Sub-Category: {field("sub_category")}
- Color: {field("ai_color")}
- Material: {field("ai_material")}

Generate 8-15 relevant tags that:
1. Include the product type, category, and material
2. Include color if applicable
3. Include style descriptors (modern, classic, rustic, etc.)
4. Include use cases or room types
5. Are single words or short phrases (2-3 words max)
6. Are in lowercase
7. Don't repeat the same information

Respond as JSON: {{"tags": "tag1, tag2, tag3"}}"""


class ProductTagStep(PipelineStep):
    """Tag one product that has no tags yet."""

    name = "product-tags"

    def __init__(self, store: RecordStore, llm: Any, secrets=()):
        self.store = store
        self.llm = llm
        self.secrets = secrets

    async def build_request(self, item: Any) -> dict:
        product = item if isinstance(item, dict) else await self.store.fetch_one(
            "shopify_products", item, columns=PRODUCT_COLUMNS
        )
        if split_tags(product.get("tags")):
            return {"product": product, "skip": True}
        logger.info("Generating tags for product: %s", product.get("title"))
        return {"product": product, "skip": False, "prompt": build_prompt(product)}

    async def invoke(self, request: dict) -> dict:
        if request["skip"]:
            return request
        content = await complete(self.llm, SYSTEM_PROMPT, request["prompt"])
        return {**request, "content": content}

    async def persist(self, item: Any, response: dict) -> Any:
        product = response["product"]
        if response["skip"]:
            return {"product_id": product["id"], "skipped": True}

        fallback = fallback_tags(product)
        parsed, degraded = parse_with_fallback(
            response["content"], TagResponse, (lambda: fallback) if fallback else None
        )
        await self.store.update("shopify_products", product["id"], {
            "tags": parsed.tags,
            "seo_synced_to_shopify": False,
        })
        return Persisted(
            result={"product_id": product["id"], "tags": parsed.tags, "skipped": False},
            degraded=degraded,
        )


async def generate_tags(
    store: RecordStore,
    llm: Any,
    product_ids: Optional[list] = None,
    limit: int = 20,
    timeout: float = 30.0,
    secrets=(),
) -> PipelineRun:
    """Tag the given products, or untagged products when none are given."""
    if product_ids is not None:
        if not product_ids:
            raise InputValidationError("Product ID is required")
        items = list(product_ids)
    else:
        items = await store.fetch(
            "shopify_products", {"tags": ("is", None)}, columns=PRODUCT_COLUMNS, limit=limit
        )
    step = ProductTagStep(store, llm, secrets=secrets)
    return await run_pipeline(step, items, limit=limit, timeout=timeout)
