import pytest

from omnia.pipeline import ErrorKind, InputValidationError, TaskStatus
from omnia.services.blog_writer import (
    ArticleBrief,
    brief_from_opportunity,
    build_prompt,
    generate_article,
    generate_from_opportunities,
    manual_brief,
)
from conftest import DummyLLM, FakeRecordStore

PRODUCTS = [
    {"id": "p1", "title": "Oak dining chair", "category": "Chairs"},
    {"id": "p2", "title": "Velvet armchair", "category": "Chairs"},
    {"id": "p3", "title": "Marble table", "category": "Tables"},
]

OPPORTUNITIES = [
    {
        "id": "o1",
        "article_title": "How to pick dining chairs",
        "category": "Chairs",
        "primary_keywords": ["dining chairs"],
        "secondary_keywords": ["oak"],
        "structure": {"h2_sections": ["Materials", "Comfort"]},
        "estimated_word_count": 2000,
        "product_ids": ["p1", "p2"],
        "status": "identified",
        "seo_opportunity_score": 90,
    },
    {
        "id": "o2",
        "article_title": "Lighting your living room",
        "category": "Lamps",
        "status": "identified",
        "seo_opportunity_score": 80,
    },
    {
        "id": "o3",
        "article_title": "Already done",
        "category": "Chairs",
        "status": "published",
    },
]

HTML = "```html\n<h2>Choosing chairs</h2><p>Text</p>\n```"


def seeded_store() -> FakeRecordStore:
    return FakeRecordStore({"shopify_products": PRODUCTS, "blog_opportunities": OPPORTUNITIES})


def test_manual_brief_defaults_keywords() -> None:
    brief = manual_brief("Chairs")
    assert brief.keywords == ["Chairs", "buying guide", "comparison"]
    assert brief.title == "Chairs Guide"


def test_manual_brief_validates_input() -> None:
    with pytest.raises(InputValidationError):
        manual_brief("")
    with pytest.raises(InputValidationError):
        manual_brief("Chairs", word_count_min=3000, word_count_max=1000)


def test_brief_from_opportunity() -> None:
    brief = brief_from_opportunity(OPPORTUNITIES[0])
    assert brief.title == "How to pick dining chairs"
    assert brief.keywords == ["dining chairs", "oak"]
    assert (brief.word_count_min, brief.word_count_max) == (1600, 2400)
    assert brief.opportunity_id == "o1"


def test_opportunity_without_title_rejected() -> None:
    with pytest.raises(InputValidationError):
        brief_from_opportunity({"id": "x", "category": "Chairs"})


def test_prompt_lists_products_and_sections() -> None:
    brief = ArticleBrief(title="T", category="Chairs", keywords=["k"], h2_sections=["A", "B"])
    prompt = build_prompt(brief, PRODUCTS[:2])
    assert "Oak dining chair, Velvet armchair" in prompt
    assert "A | B" in prompt


@pytest.mark.asyncio
async def test_auto_mode_updates_opportunity_status() -> None:
    store = seeded_store()
    llm = DummyLLM(HTML)

    run = await generate_from_opportunities(store, llm)

    assert [t.id for t in run.tasks] == ["o1", "o2"]
    assert run.get("o1").status == TaskStatus.SUCCEEDED
    assert run.get("o2").error_kind == ErrorKind.STORE

    articles = store.rows("blog_articles")
    assert len(articles) == 1
    assert articles[0]["content"] == "<h2>Choosing chairs</h2><p>Text</p>"
    assert articles[0]["sync_status"] == "draft"
    assert articles[0]["related_product_ids"] == ["p1", "p2"]
    assert articles[0]["opportunity_id"] == "o1"

    opportunities = {o["id"]: o for o in store.rows("blog_opportunities")}
    assert opportunities["o1"]["status"] == "published"
    assert opportunities["o1"]["article_id"] == articles[0]["id"]
    assert opportunities["o2"]["status"] == "failed"
    assert "Lamps" in opportunities["o2"]["generation_error"]
    assert opportunities["o3"]["status"] == "published"


@pytest.mark.asyncio
async def test_auto_mode_marks_generating_first() -> None:
    store = seeded_store()
    await generate_from_opportunities(store, DummyLLM(HTML), limit=1)
    statuses = [fields["status"] for table, _, fields in store.updates if table == "blog_opportunities"]
    assert statuses == ["generating", "published"]


@pytest.mark.asyncio
async def test_manual_article_uses_category_products() -> None:
    store = seeded_store()
    llm = DummyLLM(HTML)

    run = await generate_article(store, llm, manual_brief("Chairs", ["dining chairs"]))

    task = run.get("manual")
    assert task.status == TaskStatus.SUCCEEDED
    assert store.rows("blog_articles")[0]["title"] == "Complete Guide: dining chairs"
    assert "Oak dining chair" in llm.prompts[0]
    assert "Marble table" not in llm.prompts[0]
    assert all(table != "blog_opportunities" for table, _, _ in store.updates)


@pytest.mark.asyncio
async def test_empty_article_is_parse_error() -> None:
    store = seeded_store()
    run = await generate_article(store, DummyLLM("```html\n```"), manual_brief("Chairs"))
    assert run.get("manual").error_kind == ErrorKind.PARSE
    assert store.rows("blog_articles") == []


@pytest.mark.asyncio
async def test_no_matching_products_is_store_error() -> None:
    run = await generate_article(seeded_store(), DummyLLM(HTML), manual_brief("Sofas"))
    assert run.get("manual").error_kind == ErrorKind.STORE
