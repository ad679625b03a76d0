"""SEO opportunity endpoints."""

from typing import Optional
from pydantic import BaseModel, Field
from fastapi import APIRouter, Depends, Query

from ..config import get_settings
from ..dependencies import record_store, seo_llm
from ..services.cache import cache
from ..services.seo_opportunities import generate_opportunities
from ..services.store import RecordStore

router = APIRouter(tags=["seo"])

OPPORTUNITIES_CACHE_KEY = "seo:opportunities"


class OpportunityRequest(BaseModel):
    """Request to generate SEO opportunities."""
    products: Optional[list[dict]] = Field(
        default=None, description="Products to analyse; defaults to the stored catalog"
    )
    language: str = Field(default="en", description="en, fr, es, de or it")


@router.post("/seo/opportunities/generate")
async def generate(
    request: OpportunityRequest,
    store: RecordStore = Depends(record_store),
    llm=Depends(seo_llm),
):
    """Generate blog article opportunities from the product catalog."""
    settings = get_settings()
    result = await generate_opportunities(
        store,
        llm,
        products=request.products,
        language=request.language,
        timeout=settings.external_call_timeout,
        secrets=settings.secrets(),
    )
    cache.invalidate(OPPORTUNITIES_CACHE_KEY)
    return result


@router.get("/seo/opportunities")
async def list_opportunities(
    refresh: Optional[str] = Query(None),
    store: RecordStore = Depends(record_store),
):
    """List stored opportunities, best score first."""
    settings = get_settings()

    if refresh != "1":
        cached = cache.get(OPPORTUNITIES_CACHE_KEY)
        if cached is not None:
            return cached

    rows = await store.fetch(
        "blog_opportunities", order="seo_opportunity_score.desc", limit=100
    )
    result = {"opportunities": rows, "total": len(rows)}
    cache.put(OPPORTUNITIES_CACHE_KEY, result, settings.opportunities_cache_ttl)
    return result
