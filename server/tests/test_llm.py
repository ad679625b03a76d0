import httpx
import openai
import pytest

from omnia.config import get_settings
from omnia.dependencies import article_llm
from omnia.pipeline import ExternalCallError
from omnia.services.llm import complete, get_llm
from conftest import DummyLLM

REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


class RaisingLLM:
    def __init__(self, error: Exception) -> None:
        self.error = error

    async def ainvoke(self, messages):
        raise self.error


@pytest.mark.asyncio
async def test_complete_returns_stripped_text() -> None:
    llm = DummyLLM("  hello  ")
    assert await complete(llm, "system", "prompt") == "hello"
    assert llm.prompts == ["prompt"]


@pytest.mark.asyncio
async def test_status_error_carries_http_status() -> None:
    response = httpx.Response(401, request=REQUEST)
    error = openai.APIStatusError("Incorrect API key", response=response, body=None)
    with pytest.raises(ExternalCallError) as exc:
        await complete(RaisingLLM(error), "s", "p")
    assert exc.value.status == 401


@pytest.mark.asyncio
async def test_timeout_is_external_call_error() -> None:
    with pytest.raises(ExternalCallError) as exc:
        await complete(RaisingLLM(openai.APITimeoutError(request=REQUEST)), "s", "p")
    assert "timed out" in str(exc.value)


@pytest.mark.asyncio
async def test_empty_reply_is_malformed() -> None:
    with pytest.raises(ExternalCallError) as exc:
        await complete(DummyLLM("   "), "s", "p")
    assert "malformed" in str(exc.value)


def test_unknown_provider_rejected() -> None:
    with pytest.raises(ValueError):
        get_llm("mystery")


@pytest.fixture
def openai_key(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-key-0000")
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


def test_explicit_timeout_overrides_default(openai_key) -> None:
    llm = get_llm("openai", model="gpt-4o", timeout=120.0)
    assert llm.request_timeout == 120.0
    assert get_llm("openai").request_timeout == openai_key.external_call_timeout


def test_article_model_gets_long_timeout(openai_key) -> None:
    llm = article_llm()
    assert llm.request_timeout == openai_key.article_call_timeout
    assert openai_key.article_call_timeout > openai_key.external_call_timeout
