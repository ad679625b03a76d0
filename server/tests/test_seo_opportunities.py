import json

import pytest

from omnia.pipeline import ErrorKind, InputValidationError, TaskStatus
from omnia.services.seo_opportunities import (
    MAX_CATEGORIES,
    ProductGroup,
    build_prompt,
    fallback_batch,
    generate_opportunities,
    group_products,
    split_tags,
)
from conftest import DummyLLM, FakeRecordStore


def product(pid, category, sub=None, **extra):
    return {"id": pid, "title": f"Product {pid}", "category": category, "sub_category": sub, **extra}


def catalog():
    products = [product(f"c{i}", "Chairs", "Dining", ai_color="oak") for i in range(3)]
    products += [product(f"t{i}", "Tables") for i in range(3)]
    products += [product("l1", "Lamps"), product("l2", "Lamps")]
    return products


def reply(title, score):
    return json.dumps({"opportunities": [{
        "article_title": title,
        "meta_description": "desc",
        "type": "how-to",
        "primary_keywords": ["a"],
        "secondary_keywords": ["b"],
        "structure": {"h1": title, "h2_sections": ["One", "Two"], "cta": "Shop"},
        "seo_opportunity_score": score,
        "difficulty": "easy",
        "intro_excerpt": "intro",
        "estimated_word_count": 1800,
    }]})


def test_group_products_keeps_groups_of_three() -> None:
    categories, subcategories = group_products(catalog())
    assert [g.key for g in categories] == ["Chairs", "Tables"]
    assert [g.key for g in subcategories] == ["Chairs:Dining"]
    assert categories[0].product_ids == ["c0", "c1", "c2"]


def test_group_products_caps_categories() -> None:
    products = [product(f"{c}{i}", f"Cat{c}") for c in range(8) for i in range(3)]
    categories, _ = group_products(products)
    assert len(categories) == MAX_CATEGORIES


def test_split_tags_accepts_string_or_list() -> None:
    assert split_tags("oak, chair , ") == ["oak", "chair"]
    assert split_tags(["oak", " "]) == ["oak"]
    assert split_tags(None) == []


def test_prompt_mentions_group_details() -> None:
    group = ProductGroup("Chairs", "Dining", [product("c1", "Chairs", "Dining", tags="oak, wood")])
    prompt = build_prompt(group, "fr", 1)
    assert "Subcategory: Dining" in prompt
    assert "oak, wood" in prompt
    assert "French" in prompt


def test_fallback_is_deterministic() -> None:
    group = ProductGroup("Chairs", products=[product("c1", "Chairs")] * 3)
    assert fallback_batch(group) == fallback_batch(group)
    assert fallback_batch(group).opportunities[0].article_title == "The Complete Guide to Choosing Chairs"


@pytest.mark.asyncio
async def test_generates_and_stores_sorted_opportunities() -> None:
    store = FakeRecordStore()

    def answer(prompt):
        if "Subcategory: Dining" in prompt:
            return reply("Dining chairs", 90)
        if "Category: Chairs" in prompt:
            return reply("Chairs guide", 60)
        return reply("Tables guide", 70)

    result = await generate_opportunities(store, DummyLLM(answer), products=catalog(), language="en")

    assert result["success"]
    assert [o["article_title"] for o in result["opportunities"]] == [
        "Dining chairs", "Tables guide", "Chairs guide",
    ]
    rows = store.rows("blog_opportunities")
    assert len(rows) == 3
    assert all(r["status"] == "identified" for r in rows)
    dining = next(r for r in rows if r["article_title"] == "Dining chairs")
    assert dining["subcategory"] == "Dining"
    assert dining["product_count"] == 3
    assert result["run"]["succeeded"] == 3


@pytest.mark.asyncio
async def test_malformed_response_uses_fallback() -> None:
    store = FakeRecordStore()
    products = [product(f"t{i}", "Tables") for i in range(3)]

    result = await generate_opportunities(store, DummyLLM("Sorry, I can't do JSON today."), products=products)

    task = result["run"]["tasks"][0]
    assert task["status"] == TaskStatus.SUCCEEDED.value
    assert task["degraded"] is True
    titles = [r["article_title"] for r in store.rows("blog_opportunities")]
    assert titles == [o.article_title for o in fallback_batch(ProductGroup("Tables", products=products)).opportunities]


@pytest.mark.asyncio
async def test_failed_group_does_not_stop_others() -> None:
    store = FakeRecordStore()

    class FlakyLLM(DummyLLM):
        async def ainvoke(self, messages):
            prompt = messages[-1].content
            if "Category: Chairs" in prompt and "Subcategory" not in prompt:
                raise RuntimeError("socket closed")
            return await super().ainvoke(messages)

    result = await generate_opportunities(
        store, FlakyLLM(reply("Tables guide", 70)), products=catalog()
    )
    tasks = {t["id"]: t for t in result["run"]["tasks"]}
    assert tasks["Chairs"]["status"] == "failed"
    assert tasks["Chairs"]["error"] == ErrorKind.UNEXPECTED.value
    assert tasks["Tables"]["status"] == "succeeded"
    assert tasks["Chairs:Dining"]["status"] == "succeeded"


@pytest.mark.asyncio
async def test_store_insert_failure_marks_group_failed() -> None:
    store = FakeRecordStore()
    store.fail_on.add(("insert", "blog_opportunities"))
    products = [product(f"t{i}", "Tables") for i in range(3)]

    result = await generate_opportunities(store, DummyLLM(reply("x", 50)), products=products)
    assert result["run"]["tasks"][0]["error"] == ErrorKind.STORE.value
    assert result["total"] == 0


@pytest.mark.asyncio
async def test_fetches_catalog_when_no_products_given() -> None:
    store = FakeRecordStore({"shopify_products": [product(f"t{i}", "Tables") for i in range(3)]})
    result = await generate_opportunities(store, DummyLLM(reply("Tables guide", 70)))
    assert result["total"] == 1


@pytest.mark.asyncio
async def test_empty_catalog_returns_nothing() -> None:
    result = await generate_opportunities(FakeRecordStore(), DummyLLM("unused"))
    assert result["opportunities"] == []
    assert result["total"] == 0
    assert result["run"]["total"] == 0


@pytest.mark.asyncio
async def test_empty_product_list_is_validation_error() -> None:
    with pytest.raises(InputValidationError):
        await generate_opportunities(FakeRecordStore(), DummyLLM("unused"), products=[])
