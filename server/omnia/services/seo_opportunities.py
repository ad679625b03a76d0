"""SEO opportunity generation - blog article ideas per product category."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

from ..pipeline import (
    InputValidationError,
    Persisted,
    PipelineRun,
    PipelineStep,
    run_pipeline,
)
from ..pipeline.parsing import parse_with_fallback
from .llm import complete
from .store import RecordStore

logger = logging.getLogger(__name__)

MIN_GROUP_SIZE = 3
MAX_CATEGORIES = 5
MAX_SUBCATEGORIES = 3
MAX_OPPORTUNITIES = 15
PRODUCT_FETCH_LIMIT = 500

PRODUCT_COLUMNS = "id, title, category, sub_category, product_type, tags, ai_color, ai_material"

LANGUAGES = {
    "en": {
        "name": "English",
        "role": "You are an SEO expert and e-commerce writer specialized in furniture and home decor.",
        "tone": "The tone should be natural, engaging, and conversion-oriented.",
    },
    "fr": {
        "name": "French",
        "role": "Tu es un expert SEO et rédacteur e-commerce spécialisé dans le mobilier et la décoration.",
        "tone": "Le ton doit être naturel, engageant, et orienté conversion.",
    },
    "es": {
        "name": "Spanish",
        "role": "Eres un experto en SEO y redactor de comercio electrónico especializado en muebles y decoración.",
        "tone": "El tono debe ser natural, atractivo y orientado a la conversión.",
    },
    "de": {
        "name": "German",
        "role": "Sie sind ein SEO-Experte und E-Commerce-Autor, spezialisiert auf Möbel und Heimdekoration.",
        "tone": "Der Ton sollte natürlich, ansprechend und konversionsorientiert sein.",
    },
    "it": {
        "name": "Italian",
        "role": "Sei un esperto SEO e scrittore di e-commerce specializzato in mobili e arredamento.",
        "tone": "Il tono deve essere naturale, coinvolgente e orientato alla conversione.",
    },
}


class OpportunityStructure(BaseModel):
    h1: Optional[str] = None
    h2_sections: list[str] = Field(default_factory=list)
    cta: Optional[str] = None


class Opportunity(BaseModel):
    """One blog article idea as returned by the model."""
    article_title: str = Field(..., min_length=1)
    meta_description: str = ""
    type: str = "category-guide"
    primary_keywords: list[str] = Field(default_factory=list)
    secondary_keywords: list[str] = Field(default_factory=list)
    structure: OpportunityStructure = Field(default_factory=OpportunityStructure)
    seo_opportunity_score: int = Field(default=75, ge=0, le=100)
    difficulty: str = "medium"
    intro_excerpt: str = ""
    estimated_word_count: int = Field(default=2000, gt=0)


class OpportunityBatch(BaseModel):
    opportunities: list[Opportunity] = Field(..., min_length=1)


@dataclass
class ProductGroup:
    """Products sharing a category (and optionally a sub-category)."""
    category: str
    subcategory: str = ""
    products: list[dict] = field(default_factory=list)

    @property
    def key(self) -> str:
        if self.subcategory:
            return f"{self.category}:{self.subcategory}"
        return self.category

    @property
    def label(self) -> str:
        return self.subcategory or self.category

    @property
    def product_ids(self) -> list:
        return [p["id"] for p in self.products if p.get("id") is not None]


def get_language(language: Optional[str]) -> str:
    return language if language in LANGUAGES else "en"


def split_tags(tags: Any) -> list[str]:
    """Tags arrive either as a comma-separated string or a list."""
    if not tags:
        return []
    if isinstance(tags, str):
        tags = tags.split(",")
    return [str(t).strip() for t in tags if str(t).strip()]


def _unique(values, limit: int) -> list[str]:
    seen = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
        if len(seen) >= limit:
            break
    return seen


def group_products(products: list[dict]) -> tuple[list[ProductGroup], list[ProductGroup]]:
    """Split products into category groups and category:sub-category groups.

    Only groups with at least MIN_GROUP_SIZE products are kept, capped at
    MAX_CATEGORIES and MAX_SUBCATEGORIES, in first-seen order.
    """
    categories: dict[str, ProductGroup] = {}
    subcategories: dict[str, ProductGroup] = {}

    for product in products:
        category = product.get("category")
        if not category:
            continue
        categories.setdefault(category, ProductGroup(category=category)).products.append(product)

        subcategory = product.get("sub_category")
        if subcategory:
            group = subcategories.setdefault(
                f"{category}:{subcategory}",
                ProductGroup(category=category, subcategory=subcategory),
            )
            group.products.append(product)

    category_groups = [g for g in categories.values() if len(g.products) >= MIN_GROUP_SIZE]
    subcategory_groups = [g for g in subcategories.values() if len(g.products) >= MIN_GROUP_SIZE]
    return category_groups[:MAX_CATEGORIES], subcategory_groups[:MAX_SUBCATEGORIES]


def build_prompt(group: ProductGroup, language: str, count: int) -> str:
    """Build the opportunity prompt for one product group."""
    lang = LANGUAGES[language]
    sample_size = 5 if not group.subcategory else 3
    titles = [p.get("title", "") for p in group.products[:sample_size]]
    tags = _unique((t for p in group.products for t in split_tags(p.get("tags"))), 10)
    colors = _unique((p.get("ai_color") for p in group.products), 5)
    materials = _unique((p.get("ai_material") for p in group.products), 5)

    lines = [
        lang["role"],
        "",
        "Analyze this product information:",
        f"- Category: {group.category}",
    ]
    if group.subcategory:
        lines.append(f"- Subcategory: {group.subcategory}")
    lines += [
        f"- Number of products: {len(group.products)}",
        f"- Product titles: {', '.join(titles)}",
        f"- Colors: {', '.join(colors) or 'N/A'}",
        f"- Materials: {', '.join(materials) or 'N/A'}",
        f"- Available tags: {', '.join(tags) or 'N/A'}",
        f"- Target language: {lang['name']}",
        "",
        "IMPORTANT: Base your ideas ONLY on the category, real product titles, colors "
        "and materials. Do NOT use brand names or vendor names.",
        "",
        f"Generate {count} SEO-optimized blog article idea(s) for this "
        f"{'subcategory' if group.subcategory else 'category'}, written in {lang['name']}.",
        "",
        "Respond ONLY with valid JSON in this exact format:",
        '{"opportunities": [{"article_title": "... (under 65 characters)", '
        '"meta_description": "... (150-160 characters)", '
        '"type": "category-guide|comparison|how-to|product-spotlight|seasonal", '
        '"primary_keywords": ["..."], "secondary_keywords": ["..."], '
        '"structure": {"h1": "...", "h2_sections": ["..."], "cta": "..."}, '
        '"seo_opportunity_score": 85, "difficulty": "easy|medium|hard", '
        '"intro_excerpt": "...", "estimated_word_count": 2000}]}',
        "",
        lang["tone"],
    ]
    return "\n".join(lines)


def fallback_batch(group: ProductGroup) -> OpportunityBatch:
    """Deterministic ideas derived from the group alone."""
    label = group.label
    count = len(group.products)
    keyword = label.lower()
    return OpportunityBatch(opportunities=[
        Opportunity(
            article_title=f"The Complete Guide to Choosing {label}",
            meta_description=(
                f"Explore our selection of {count} {keyword} products and expert "
                f"advice to make the right choice."
            ),
            type="category-guide",
            primary_keywords=[keyword, "buying guide", "how to choose"],
            secondary_keywords=["tips", "comparison", "best"],
            structure=OpportunityStructure(
                h2_sections=["Introduction", "Our Selection", "Buying Tips", "FAQ"],
            ),
            seo_opportunity_score=80,
            difficulty="medium",
            intro_excerpt=f"Our guide helps you find the right {keyword} among {count} products.",
            estimated_word_count=2000,
        ),
        Opportunity(
            article_title=f"Top {min(count, 5)} {label} Compared",
            meta_description=f"A side-by-side comparison of our best {keyword} products.",
            type="comparison",
            primary_keywords=[keyword, "top", "comparison"],
            secondary_keywords=["best", "reviews"],
            structure=OpportunityStructure(
                h2_sections=["How We Compared", "The Selection", "Comparison Table", "Our Pick"],
            ),
            seo_opportunity_score=75,
            difficulty="easy",
            intro_excerpt=f"We compared {count} {keyword} products to pick the best ones.",
            estimated_word_count=1500,
        ),
    ])


class SeoOpportunityStep(PipelineStep):
    """Generate and store opportunities for one product group."""

    name = "seo-opportunities"

    def __init__(self, store: RecordStore, llm: Any, language: str = "en", secrets=()):
        self.store = store
        self.llm = llm
        self.language = get_language(language)
        self.secrets = secrets

    def task_id(self, item: ProductGroup) -> str:
        return item.key

    async def build_request(self, item: ProductGroup) -> dict:
        count = 1 if item.subcategory else 3
        return {
            "system": f"{LANGUAGES[self.language]['role']} Respond only in valid JSON.",
            "prompt": build_prompt(item, self.language, count),
        }

    async def invoke(self, request: dict) -> str:
        return await complete(self.llm, request["system"], request["prompt"])

    async def persist(self, item: ProductGroup, response: str) -> Persisted:
        batch, degraded = parse_with_fallback(
            response, OpportunityBatch, lambda: fallback_batch(item)
        )
        if degraded:
            logger.warning("Unparseable opportunities for %s, using fallback", item.key)

        generated_at = datetime.now(timezone.utc).isoformat()
        rows = []
        for opportunity in batch.opportunities:
            row = opportunity.model_dump()
            row.update({
                "category": item.category,
                "subcategory": item.subcategory,
                "product_ids": item.product_ids,
                "product_count": len(item.products),
                "status": "identified",
                "language": self.language,
                "generated_at": generated_at,
            })
            rows.append(await self.store.insert("blog_opportunities", row))
        return Persisted(result=rows, degraded=degraded)


async def generate_opportunities(
    store: RecordStore,
    llm: Any,
    products: Optional[list[dict]] = None,
    language: str = "en",
    timeout: float = 30.0,
    secrets=(),
) -> dict:
    """Generate opportunities for the catalog and store them.

    Category groups run first; sub-category groups only run while fewer
    than MAX_OPPORTUNITIES opportunities exist.
    """
    if products is not None and not products:
        raise InputValidationError("Products array is required")

    if products is None:
        products = await store.fetch("shopify_products", columns=PRODUCT_COLUMNS, limit=PRODUCT_FETCH_LIMIT)
        if not products:
            logger.info("No products found, nothing to generate")
            return {"success": True, "opportunities": [], "total": 0, "run": PipelineRun().to_dict()}

    category_groups, subcategory_groups = group_products(products)
    step = SeoOpportunityStep(store, llm, language=language, secrets=secrets)

    run = await run_pipeline(step, category_groups, timeout=timeout)
    opportunities = [row for rows in run.results() for row in rows]

    if subcategory_groups and len(opportunities) < MAX_OPPORTUNITIES:
        sub_run = await run_pipeline(step, subcategory_groups, timeout=timeout)
        run.tasks.extend(sub_run.tasks)
        opportunities.extend(row for rows in sub_run.results() for row in rows)

    opportunities.sort(key=lambda o: o.get("seo_opportunity_score") or 0, reverse=True)

    logger.info(
        "Generated %d opportunities from %d products (%d groups failed)",
        len(opportunities), len(products), run.failed,
    )
    return {
        "success": True,
        "opportunities": opportunities,
        "total": len(opportunities),
        "run": run.to_dict(),
    }
