"""Chat model access for content generation (OpenAI and DeepSeek)."""

import logging
from typing import Any, Optional

import openai
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from ..config import get_settings
from ..pipeline.errors import ExternalCallError, redact

logger = logging.getLogger(__name__)

PROVIDERS = ("openai", "deepseek")


def get_llm(
    provider: str = "openai",
    model: Optional[str] = None,
    temperature: float = 0.7,
    max_tokens: Optional[int] = None,
    json_mode: bool = False,
    timeout: Optional[float] = None,
) -> Any:
    """Get a chat model for the given provider.

    DeepSeek speaks the OpenAI wire format, so both go through ChatOpenAI.
    Retries are disabled: a failed call fails the item.
    """
    settings = get_settings()
    if provider not in PROVIDERS:
        raise ValueError(f"unknown LLM provider: {provider}")

    if provider == "deepseek":
        llm = ChatOpenAI(
            model=model or settings.seo_model,
            api_key=settings.deepseek_api_key,
            base_url=settings.deepseek_base_url,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout or settings.external_call_timeout,
            max_retries=0,
        )
    else:
        llm = ChatOpenAI(
            model=model or settings.tag_model,
            api_key=settings.openai_api_key,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout or settings.external_call_timeout,
            max_retries=0,
        )

    if json_mode:
        return llm.bind(response_format={"type": "json_object"})
    return llm


def provider_configured(provider: str) -> bool:
    settings = get_settings()
    if provider == "deepseek":
        return bool(settings.deepseek_api_key)
    return bool(settings.openai_api_key)


async def complete(llm: Any, system: str, prompt: str) -> str:
    """Send one system + user exchange and return the reply text."""
    secrets = get_settings().secrets()
    try:
        response = await llm.ainvoke([
            SystemMessage(content=system),
            HumanMessage(content=prompt),
        ])
    except openai.APITimeoutError:
        raise ExternalCallError("LLM request timed out")
    except openai.APIStatusError as e:
        raise ExternalCallError(
            redact(f"LLM API error: {e.message}", secrets), status=e.status_code
        )
    except openai.APIError as e:
        raise ExternalCallError(redact(f"LLM request failed: {e}", secrets))

    content = getattr(response, "content", None)
    if not isinstance(content, str) or not content.strip():
        raise ExternalCallError("LLM returned a malformed response")
    return content.strip()
