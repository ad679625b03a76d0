"""Blog article generation from SEO opportunities or a manual brief."""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from ..pipeline import (
    InputValidationError,
    ParseError,
    PipelineRun,
    PipelineStep,
    PipelineTask,
    StoreError,
    TaskStatus,
    run_pipeline,
)
from ..pipeline.parsing import strip_code_fences
from .llm import complete
from .seo_opportunities import LANGUAGES, get_language
from .store import RecordStore

logger = logging.getLogger(__name__)

MANUAL_TASK_ID = "manual"
RELATED_PRODUCT_LIMIT = 20
PRODUCT_COLUMNS = "id, title, handle, image_url, price, category, ai_color, ai_material"

# Task status -> blog_opportunities.status
OPPORTUNITY_STATUS = {
    TaskStatus.IN_PROGRESS: "generating",
    TaskStatus.SUCCEEDED: "published",
    TaskStatus.FAILED: "failed",
}


@dataclass
class ArticleBrief:
    """What to write about."""
    title: str
    category: str
    keywords: list[str] = field(default_factory=list)
    language: str = "en"
    word_count_min: int = 1800
    word_count_max: int = 2500
    meta_description: str = ""
    h2_sections: list[str] = field(default_factory=list)
    product_ids: list = field(default_factory=list)
    opportunity_id: Optional[str] = None


def manual_brief(
    category: str,
    keywords: Optional[list[str]] = None,
    language: str = "en",
    word_count_min: int = 1800,
    word_count_max: int = 2500,
) -> ArticleBrief:
    if not category:
        raise InputValidationError("category is required")
    if word_count_min > word_count_max:
        raise InputValidationError("word_count_min must not exceed word_count_max")
    keywords = [k for k in (keywords or []) if k] or [category, "buying guide", "comparison"]
    title = f"Complete Guide: {keywords[0]}" if keywords[0] != category else f"{category} Guide"
    return ArticleBrief(
        title=title,
        category=category,
        keywords=keywords,
        language=get_language(language),
        word_count_min=word_count_min,
        word_count_max=word_count_max,
    )


def brief_from_opportunity(opportunity: dict) -> ArticleBrief:
    title = opportunity.get("article_title")
    if not title:
        raise InputValidationError(f"opportunity {opportunity.get('id')} has no article_title")
    keywords = list(opportunity.get("primary_keywords") or []) + list(
        opportunity.get("secondary_keywords") or []
    )
    structure = opportunity.get("structure") or {}
    word_count = opportunity.get("estimated_word_count") or 2000
    return ArticleBrief(
        title=title,
        category=opportunity.get("category") or "",
        keywords=keywords,
        language=get_language(opportunity.get("language")),
        word_count_min=max(int(word_count * 0.8), 300),
        word_count_max=int(word_count * 1.2),
        meta_description=opportunity.get("meta_description") or "",
        h2_sections=list(structure.get("h2_sections") or []),
        product_ids=list(opportunity.get("product_ids") or []),
        opportunity_id=opportunity.get("id"),
    )


def build_prompt(brief: ArticleBrief, products: list[dict]) -> str:
    lang = LANGUAGES[brief.language]
    lines = [
        f'Write a complete SEO article in HTML titled "{brief.title}".',
        f"Feature these products: {', '.join(p.get('title', '') for p in products)}.",
        f"Language: {lang['name']}.",
        f"Length: {brief.word_count_min}-{brief.word_count_max} words.",
        f"Include the keywords: {', '.join(brief.keywords)}.",
    ]
    if brief.h2_sections:
        lines.append(f"Use these <h2> sections: {' | '.join(brief.h2_sections)}.")
    lines += [
        "Structure: <h2>, <h3> and <p> elements only, no <html> or <body> wrapper.",
        "Finish with an engaging call to action.",
    ]
    return "\n".join(lines)


class BlogArticleStep(PipelineStep):
    """Write one article and store it in blog_articles."""

    name = "blog-writer"

    def __init__(self, store: RecordStore, llm: Any, secrets=()):
        self.store = store
        self.llm = llm
        self.secrets = secrets

    def task_id(self, item) -> str:
        if isinstance(item, ArticleBrief):
            return item.opportunity_id or MANUAL_TASK_ID
        return str(item.get("id"))

    async def _related_products(self, brief: ArticleBrief) -> list[dict]:
        if brief.product_ids:
            filters = {"id": ("in", brief.product_ids[:RELATED_PRODUCT_LIMIT])}
        elif brief.category:
            filters = {"category": ("ilike", f"*{brief.category}*")}
        else:
            raise InputValidationError("brief has neither products nor a category")
        products = await self.store.fetch(
            "shopify_products", filters, columns=PRODUCT_COLUMNS, limit=RELATED_PRODUCT_LIMIT
        )
        if not products:
            raise StoreError(f"no products found for '{brief.category}'", not_found=True)
        return products

    async def build_request(self, item) -> dict:
        brief = item if isinstance(item, ArticleBrief) else brief_from_opportunity(item)
        products = await self._related_products(brief)
        return {
            "brief": brief,
            "products": products,
            "system": "You are an expert SEO copywriter for furniture and home decor.",
            "prompt": build_prompt(brief, products),
        }

    async def invoke(self, request: dict) -> dict:
        content = await complete(self.llm, request["system"], request["prompt"])
        return {**request, "html": strip_code_fences(content)}

    async def persist(self, item, response: dict) -> Any:
        html = response["html"]
        if not html:
            raise ParseError("model returned an empty article")

        brief: ArticleBrief = response["brief"]
        article = await self.store.insert("blog_articles", {
            "title": brief.title,
            "content": html,
            "meta_description": brief.meta_description
            or f"Our advice for choosing your {brief.category.lower()}.",
            "target_keywords": brief.keywords,
            "related_product_ids": [p["id"] for p in response["products"]],
            "author": "AI Blog Writer",
            "published": False,
            "sync_status": "draft",
            "language": brief.language,
            "opportunity_id": brief.opportunity_id,
        })
        logger.info("Saved article %s (%s)", article.get("id"), brief.title)
        return article.get("id")

    async def record_status(self, task: PipelineTask) -> None:
        if task.id == MANUAL_TASK_ID or task.status not in OPPORTUNITY_STATUS:
            return
        fields = {"status": OPPORTUNITY_STATUS[task.status]}
        if task.status == TaskStatus.SUCCEEDED:
            fields["article_id"] = task.result
            fields["generation_error"] = None
        elif task.status == TaskStatus.FAILED:
            fields["generation_error"] = task.error_detail
        await self.store.update("blog_opportunities", task.id, fields)


async def generate_from_opportunities(
    store: RecordStore,
    llm: Any,
    limit: int = 5,
    timeout: float = 30.0,
    secrets=(),
) -> PipelineRun:
    """Write an article for every opportunity that is not yet published."""
    opportunities = await store.fetch(
        "blog_opportunities",
        {"status": ("neq", "published")},
        order="seo_opportunity_score.desc",
        limit=limit,
    )
    if not opportunities:
        logger.info("No SEO opportunities to process")
    step = BlogArticleStep(store, llm, secrets=secrets)
    return await run_pipeline(step, opportunities, limit=limit, timeout=timeout)


async def generate_article(
    store: RecordStore,
    llm: Any,
    brief: ArticleBrief,
    timeout: float = 30.0,
    secrets=(),
) -> PipelineRun:
    """Write a single article from a manual brief."""
    step = BlogArticleStep(store, llm, secrets=secrets)
    return await run_pipeline(step, [brief], timeout=timeout)
