"""Image ALT text generation."""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Optional

from ..pipeline import (
    InputValidationError,
    Persisted,
    PipelineRun,
    PipelineStep,
    run_pipeline,
)
from .llm import complete
from .seo_opportunities import LANGUAGES, get_language, split_tags
from .store import RecordStore

logger = logging.getLogger(__name__)

IMAGE_COLUMNS = "id, product_id, src, position, alt_text"
PRODUCT_COLUMNS = (
    "id, title, description, product_type, category, sub_category, "
    "ai_color, ai_material, style, functionality, ai_vision_analysis, tags"
)

MAX_ALT_LENGTH = 125
MIN_ALT_LENGTH = 10

IMAGE_CONTEXT = {
    1: "Main image: overall view of the product",
    2: "Secondary view: another angle or a detail",
    3: "Detail view: close-up on features",
    4: "Context view: the product in use",
}

SYSTEM_PROMPT = (
    "You are a web accessibility and e-commerce SEO expert. "
    "You write short, factual ALT text for product images. "
    "Reply with the ALT text only: no JSON, no quotes, no markdown."
)

_JSON_ALT = re.compile(r'"alt_?text"\s*:\s*"([^"]*)"', re.IGNORECASE)
_PREFIX = re.compile(
    r"^(?:an?\s+)?(?:image|photo|picture)(?:\s+of\b)?\s*[:\-]\s*"
    r"|^(?:an?\s+)?(?:image|photo|picture)\s+of\s+",
    re.IGNORECASE,
)


def product_type_of(product: dict) -> str:
    return (product.get("product_type") or product.get("category") or "Product").strip()


def image_context(position: Optional[int]) -> str:
    position = position or 1
    return IMAGE_CONTEXT.get(position, f"Extra view {position}")


def build_prompt(product: dict, image: dict, language: str = "en") -> str:
    def field(name):
        return product.get(name) or "Not specified"

    product_type = product_type_of(product)
    description = (product.get("description") or "")[:400] or "Not provided"
    tags = ", ".join(split_tags(product.get("tags"))) or "None"

    return f"""Write the ALT text for this product image in {LANGUAGES[language]["name"]}.

Image: {image_context(image.get("position"))}

Product:
- Title: {product.get("title")}
- Type: {product_type}
- Color: {field("ai_color")}
- Material: {field("ai_material")}
- Style: {field("style")}
- Functionality: {field("functionality")}
- Description: {description}
- Tags: {tags}

Rules:
1. At most {MAX_ALT_LENGTH} characters
2. Start with the product type ("{product_type}")
3. Describe what is visible: color, material, shape, angle
4. Never start with "Image of" or "Photo of"
5. Factual, no marketing language"""


def clean_alt_text(text: str, product_type: str) -> str:
    """Strip model artifacts, lead with the product type and cap the length."""
    match = _JSON_ALT.search(text)
    if match:
        text = match.group(1)
    text = re.sub(r"[{}\[\]*_`#]", "", text)
    text = text.strip().strip("\"'").strip()
    text = _PREFIX.sub("", text)
    text = re.sub(r"\s+", " ", text).strip()
    if not text:
        return ""

    if not text.lower().startswith(product_type.lower()):
        text = f"{product_type} {text[0].lower()}{text[1:]}"

    if len(text) > MAX_ALT_LENGTH:
        cut = text[:MAX_ALT_LENGTH - 3]
        space = cut.rfind(" ")
        if space > 80:
            cut = cut[:space]
        text = cut.rstrip(" ,;:-") + "..."
    return text


def fallback_alt_text(product: dict) -> str:
    parts = [product_type_of(product), product.get("ai_color"), product.get("ai_material")]
    return " ".join(p.strip() for p in parts if p and p.strip())[:MAX_ALT_LENGTH]


def confidence_score(product: dict) -> int:
    """How much product analysis the ALT text could draw on, out of 100."""
    weights = (
        ("ai_color", 20),
        ("ai_material", 20),
        ("style", 15),
        ("functionality", 15),
        ("ai_vision_analysis", 30),
    )
    score = sum(weight for name, weight in weights if product.get(name))
    if len(product.get("description") or "") > 50:
        score += 10
    return min(score, 100) if score else 50


class AltTextStep(PipelineStep):
    """Write ALT text for one image that has none."""

    name = "alt-texts"

    def __init__(self, store: RecordStore, llm: Any, language: str = "en", secrets=()):
        self.store = store
        self.llm = llm
        self.language = get_language(language)
        self.secrets = secrets

    async def build_request(self, item: Any) -> dict:
        image = await self.store.fetch_one("product_images", item, columns=IMAGE_COLUMNS)
        if (image.get("alt_text") or "").strip():
            return {"image": image, "skip": True}
        product = await self.store.fetch_one(
            "shopify_products", image.get("product_id"), columns=PRODUCT_COLUMNS
        )
        return {
            "image": image,
            "product": product,
            "skip": False,
            "prompt": build_prompt(product, image, self.language),
        }

    async def invoke(self, request: dict) -> dict:
        if request["skip"]:
            return request
        content = await complete(self.llm, SYSTEM_PROMPT, request["prompt"])
        return {**request, "content": content}

    async def persist(self, item: Any, response: dict) -> Any:
        image = response["image"]
        if response["skip"]:
            return {"image_id": image["id"], "skipped": True}

        product = response["product"]
        alt_text = clean_alt_text(response["content"], product_type_of(product))
        degraded = len(alt_text) < MIN_ALT_LENGTH
        if degraded:
            logger.warning("Unusable ALT text for image %s, using product attributes", image["id"])
            alt_text = fallback_alt_text(product)

        now = datetime.now(timezone.utc).isoformat()
        await self.store.update("product_images", image["id"], {
            "alt_text": alt_text,
            "alt_text_generated_at": now,
            "updated_at": now,
        })
        return Persisted(
            result={
                "image_id": image["id"],
                "alt_text": alt_text,
                "confidence_score": confidence_score(product),
                "skipped": False,
            },
            degraded=degraded,
        )


async def generate_alt_texts(
    store: RecordStore,
    llm: Any,
    image_ids: list,
    language: str = "en",
    limit: int = 20,
    timeout: float = 30.0,
    secrets=(),
) -> PipelineRun:
    if not image_ids:
        raise InputValidationError("Image ID is required")
    step = AltTextStep(store, llm, language=language, secrets=secrets)
    return await run_pipeline(step, list(image_ids), limit=limit, timeout=timeout)
