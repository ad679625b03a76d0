"""Blog article generation and Shopify sync endpoints."""

from typing import Literal, Optional
from pydantic import BaseModel, Field
from fastapi import APIRouter, Depends, Query

from ..config import get_settings
from ..dependencies import article_llm, record_store
from ..pipeline import ErrorKind, PipelineError, PipelineRun, TaskStatus
from ..services.blog_sync import sync_articles
from ..services.blog_writer import generate_article, generate_from_opportunities, manual_brief
from ..services.cache import cache
from ..services.store import RecordStore

router = APIRouter(tags=["blog"])

ARTICLES_CACHE_KEY = "blog:articles"

# Error kind -> HTTP status for single-item endpoints
ERROR_STATUS = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.STORE: 404,
    ErrorKind.EXTERNAL_CALL: 502,
    ErrorKind.PARSE: 502,
    ErrorKind.UNEXPECTED: 500,
}


class GenerateRequest(BaseModel):
    """Request to write one article, or one per open opportunity."""
    mode: Literal["manual", "auto"] = "manual"
    limit: int = Field(default=5, ge=1, le=50, description="Opportunities to process in auto mode")
    category: Optional[str] = None
    keywords: list[str] = Field(default_factory=list)
    language: str = "en"
    word_count_min: int = Field(default=1800, ge=300)
    word_count_max: int = Field(default=2500, le=10000)


class SyncRequest(BaseModel):
    article_ids: list[str] = Field(..., min_length=1, max_length=50)


def run_response(run: PipelineRun, message: str) -> dict:
    return {
        "success": run.failed == 0,
        "message": message,
        "results": run.to_dict(),
    }


def single_task_response(run: PipelineRun) -> dict:
    """Flatten a one-item run, turning a failure into an HTTP error."""
    task = run.tasks[0]
    if task.status == TaskStatus.FAILED:
        error = PipelineError(task.error_detail or "failed")
        error.kind = task.error_kind
        error.status_code = ERROR_STATUS.get(task.error_kind, 500)
        raise error
    return {"success": True, "degraded": task.degraded, "result": task.result}


@router.post("/blog/articles/generate")
async def generate(
    request: GenerateRequest,
    store: RecordStore = Depends(record_store),
    llm=Depends(article_llm),
):
    """Generate blog articles with the article model."""
    settings = get_settings()

    if request.mode == "auto":
        run = await generate_from_opportunities(
            store,
            llm,
            limit=min(request.limit, settings.max_pipeline_items),
            timeout=settings.article_call_timeout,
            secrets=settings.secrets(),
        )
        cache.invalidate(ARTICLES_CACHE_KEY)
        if run.total == 0:
            return {"success": False, "message": "No SEO opportunities to process.", "results": run.to_dict()}
        return run_response(run, f"{run.total} opportunities processed.")

    brief = manual_brief(
        request.category or "",
        keywords=request.keywords,
        language=request.language,
        word_count_min=request.word_count_min,
        word_count_max=request.word_count_max,
    )
    run = await generate_article(
        store, llm, brief, timeout=settings.article_call_timeout, secrets=settings.secrets()
    )
    cache.invalidate(ARTICLES_CACHE_KEY)
    response = single_task_response(run)
    response["article_id"] = response.pop("result")
    return response


@router.get("/blog/articles")
async def list_articles(
    refresh: Optional[str] = Query(None),
    store: RecordStore = Depends(record_store),
):
    """List stored articles, newest first."""
    settings = get_settings()

    if refresh != "1":
        cached = cache.get(ARTICLES_CACHE_KEY)
        if cached is not None:
            return cached

    rows = await store.fetch(
        "blog_articles",
        columns="id, title, sync_status, language, shopify_article_id, last_synced_at, created_at",
        order="created_at.desc",
        limit=100,
    )
    result = {"articles": rows, "total": len(rows)}
    cache.put(ARTICLES_CACHE_KEY, result, settings.articles_cache_ttl)
    return result


@router.post("/blog/articles/sync")
async def sync_many(request: SyncRequest, store: RecordStore = Depends(record_store)):
    """Sync several articles to Shopify."""
    settings = get_settings()
    run = await sync_articles(
        store,
        request.article_ids,
        api_version=settings.shopify_api_version,
        timeout=settings.external_call_timeout,
        secrets=settings.secrets(),
    )
    cache.invalidate(ARTICLES_CACHE_KEY)
    return run_response(run, f"{run.succeeded}/{run.total} articles synced.")


@router.post("/blog/articles/{article_id}/sync")
async def sync_one(article_id: str, store: RecordStore = Depends(record_store)):
    """Sync a single article to Shopify."""
    settings = get_settings()
    run = await sync_articles(
        store,
        [article_id],
        api_version=settings.shopify_api_version,
        timeout=settings.external_call_timeout,
        secrets=settings.secrets(),
    )
    cache.invalidate(ARTICLES_CACHE_KEY)
    response = single_task_response(run)
    response["shopifyArticleId"] = response["result"]["shopify_article_id"]
    return response
