"""Product enrichment endpoints."""

from typing import Optional
from pydantic import BaseModel, Field
from fastapi import APIRouter, Depends

from ..config import get_settings
from ..dependencies import alt_text_llm, record_store, tag_llm
from ..services.alt_texts import generate_alt_texts
from ..services.seo_sync import sync_product_seo
from ..services.store import RecordStore
from ..services.tagging import generate_tags

router = APIRouter(tags=["products"])


class TagRequest(BaseModel):
    """Request to generate tags."""
    product_ids: Optional[list[str]] = Field(
        default=None, max_length=100, description="Products to tag; defaults to untagged products"
    )
    limit: int = Field(default=20, ge=1, le=100)


class SeoSyncRequest(BaseModel):
    """Request to push SEO fields to Shopify."""
    product_ids: Optional[list[str]] = Field(
        default=None, max_length=100, description="Products to sync; defaults to unsynced products"
    )
    limit: int = Field(default=20, ge=1, le=100)
    user_id: Optional[str] = None


class AltTextRequest(BaseModel):
    image_ids: list[str] = Field(..., min_length=1, max_length=100)
    language: str = "en"


@router.post("/products/tags/generate")
async def generate(
    request: TagRequest,
    store: RecordStore = Depends(record_store),
    llm=Depends(tag_llm),
):
    """Generate SEO tags for products that have none."""
    settings = get_settings()
    run = await generate_tags(
        store,
        llm,
        product_ids=request.product_ids,
        limit=request.limit,
        timeout=settings.external_call_timeout,
        secrets=settings.secrets(),
    )
    return {
        "success": run.failed == 0,
        "tagged": sum(1 for r in run.results() if not r.get("skipped")),
        "results": run.to_dict(),
    }


@router.post("/products/seo/sync")
async def sync_seo(request: SeoSyncRequest, store: RecordStore = Depends(record_store)):
    """Push SEO titles, descriptions and tags to Shopify."""
    settings = get_settings()
    run = await sync_product_seo(
        store,
        product_ids=request.product_ids,
        limit=request.limit,
        api_version=settings.shopify_api_version,
        timeout=settings.external_call_timeout,
        user_id=request.user_id,
        secrets=settings.secrets(),
    )
    return {
        "success": run.failed == 0,
        "synced": run.succeeded,
        "results": run.to_dict(),
    }


@router.post("/products/alt-texts/generate")
async def generate_alt(
    request: AltTextRequest,
    store: RecordStore = Depends(record_store),
    llm=Depends(alt_text_llm),
):
    """Write ALT text for product images that have none."""
    settings = get_settings()
    run = await generate_alt_texts(
        store,
        llm,
        request.image_ids,
        language=request.language,
        limit=settings.max_pipeline_items,
        timeout=settings.external_call_timeout,
        secrets=settings.secrets(),
    )
    return {
        "success": run.failed == 0,
        "generated": sum(1 for r in run.results() if not r.get("skipped")),
        "results": run.to_dict(),
    }
