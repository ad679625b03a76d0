import pytest

from omnia.pipeline import ErrorKind, InputValidationError, TaskStatus
from omnia.services.alt_texts import (
    build_prompt,
    clean_alt_text,
    confidence_score,
    fallback_alt_text,
    generate_alt_texts,
    image_context,
)
from conftest import DummyLLM, FakeRecordStore


def tables() -> dict:
    return {
        "shopify_products": [
            {"id": "p1", "title": "Oslo oak chair", "product_type": "Chair", "ai_color": "natural",
             "ai_material": "oak", "description": "A solid oak dining chair with a curved backrest "
             "and a natural oil finish.", "tags": "oak, chair"},
            {"id": "p2", "title": "Mystery item"},
        ],
        "product_images": [
            {"id": "i1", "product_id": "p1", "position": 1, "alt_text": None},
            {"id": "i2", "product_id": "p1", "position": 2, "alt_text": "Chair in oak, side view"},
            {"id": "i3", "product_id": "p2", "position": 6, "alt_text": ""},
            {"id": "i4", "product_id": "p404", "position": 1},
        ],
    }


def images_by_id(store: FakeRecordStore) -> dict:
    return {i["id"]: i for i in store.rows("product_images")}


def test_clean_strips_model_artifacts() -> None:
    assert clean_alt_text('"Chair in solid oak, front view"', "Chair") == "Chair in solid oak, front view"
    assert clean_alt_text('{"alt_text": "Chair in **oak**"}', "Chair") == "Chair in oak"
    assert clean_alt_text("Photo of: Chair with curved back", "Chair") == "Chair with curved back"
    assert clean_alt_text("Image of a chair in oak", "Chair") == "Chair a chair in oak"


def test_clean_leads_with_product_type() -> None:
    assert clean_alt_text("Natural oak seat, front view", "Chair") == "Chair natural oak seat, front view"
    assert clean_alt_text("chair in oak", "Chair") == "chair in oak"


def test_clean_truncates_on_a_word() -> None:
    text = "Chair " + "with a very long description " * 8
    cleaned = clean_alt_text(text, "Chair")
    assert len(cleaned) <= 125
    assert cleaned.endswith("...")
    assert not cleaned[:-3].endswith(" ")


def test_clean_of_nothing_is_empty() -> None:
    assert clean_alt_text('""', "Chair") == ""


def test_fallback_uses_type_color_and_material() -> None:
    assert fallback_alt_text(tables()["shopify_products"][0]) == "Chair natural oak"
    assert fallback_alt_text({"category": "Lamps"}) == "Lamps"
    assert fallback_alt_text({}) == "Product"


def test_confidence_score() -> None:
    products = tables()["shopify_products"]
    assert confidence_score(products[0]) == 50  # color, material, long description
    assert confidence_score(products[1]) == 50
    full = {"ai_color": "x", "ai_material": "x", "style": "x", "functionality": "x",
            "ai_vision_analysis": {"shape": "round"}, "description": "x" * 60}
    assert confidence_score(full) == 100


def test_image_context_by_position() -> None:
    assert image_context(1).startswith("Main image")
    assert image_context(None).startswith("Main image")
    assert image_context(7) == "Extra view 7"


def test_prompt_carries_product_and_language() -> None:
    data = tables()
    prompt = build_prompt(data["shopify_products"][0], data["product_images"][0], "fr")
    assert "in French" in prompt
    assert "Main image" in prompt
    assert "- Material: oak" in prompt
    assert '("Chair")' in prompt


@pytest.mark.asyncio
async def test_generates_and_stores_alt_text() -> None:
    store = FakeRecordStore(tables())
    llm = DummyLLM("Chair in natural oak with curved backrest, front view")
    run = await generate_alt_texts(store, llm, ["i1", "i2"])

    assert run.succeeded == 2
    assert run.tasks[0].result["alt_text"] == "Chair in natural oak with curved backrest, front view"
    assert run.tasks[0].result["confidence_score"] == 50
    assert not run.tasks[0].degraded
    assert run.tasks[1].result == {"image_id": "i2", "skipped": True}
    assert len(llm.prompts) == 1

    images = images_by_id(store)
    assert images["i1"]["alt_text"].startswith("Chair in natural oak")
    assert images["i1"]["alt_text_generated_at"]
    assert images["i2"]["alt_text"] == "Chair in oak, side view"


@pytest.mark.asyncio
async def test_unusable_reply_falls_back_to_attributes() -> None:
    store = FakeRecordStore(tables())
    run = await generate_alt_texts(store, DummyLLM("{}"), ["i1", "i3"])

    assert [t.status for t in run.tasks] == [TaskStatus.SUCCEEDED, TaskStatus.SUCCEEDED]
    assert run.tasks[0].degraded
    assert run.tasks[0].result["alt_text"] == "Chair natural oak"
    assert images_by_id(store)["i3"]["alt_text"] == "Product"


@pytest.mark.asyncio
async def test_image_of_missing_product_fails_alone() -> None:
    store = FakeRecordStore(tables())
    run = await generate_alt_texts(store, DummyLLM("Chair in oak, natural"), ["i4", "missing", "i1"])

    assert run.tasks[0].error_kind == ErrorKind.STORE
    assert run.tasks[1].error_kind == ErrorKind.STORE
    assert run.tasks[2].status == TaskStatus.SUCCEEDED


@pytest.mark.asyncio
async def test_empty_id_list_rejected() -> None:
    with pytest.raises(InputValidationError):
        await generate_alt_texts(FakeRecordStore(tables()), DummyLLM(""), [])
