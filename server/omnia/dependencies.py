"""FastAPI dependencies for collaborators built from settings."""

from fastapi import HTTPException

from .config import get_settings
from .services.llm import get_llm, provider_configured
from .services.store import RecordStore, get_record_store


def _require(provider: str) -> None:
    if not provider_configured(provider):
        raise HTTPException(
            status_code=500,
            detail=f"{provider.upper()}_API_KEY not configured. Please set it in .env file.",
        )


def record_store() -> RecordStore:
    settings = get_settings()
    if not settings.supabase_url or not settings.supabase_service_role_key:
        raise HTTPException(
            status_code=500,
            detail="SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY not configured.",
        )
    return get_record_store()


def seo_llm():
    settings = get_settings()
    _require(settings.seo_provider)
    return get_llm(
        settings.seo_provider,
        model=settings.seo_model,
        temperature=0.7,
        max_tokens=1500,
        json_mode=True,
    )


def article_llm():
    settings = get_settings()
    _require("openai")
    return get_llm(
        "openai",
        model=settings.article_model,
        temperature=0.7,
        max_tokens=12000,
        timeout=settings.article_call_timeout,
    )


def tag_llm():
    settings = get_settings()
    _require("openai")
    return get_llm("openai", model=settings.tag_model, temperature=0.5, json_mode=True)


def alt_text_llm():
    settings = get_settings()
    _require(settings.seo_provider)
    return get_llm(settings.seo_provider, model=settings.seo_model, temperature=0.3, max_tokens=100)
