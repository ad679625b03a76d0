"""Configuration settings for the Omnia API server."""

from pathlib import Path
from functools import lru_cache
from pydantic_settings import BaseSettings


def _find_env_file() -> str:
    """Find .env file - check current dir, then parent (repository root)."""
    current = Path.cwd()

    # Check current directory
    if (current / ".env").exists():
        return str(current / ".env")

    # Check parent directory (when running from server/)
    if (current.parent / ".env").exists():
        return str(current.parent / ".env")

    # Check two levels up (when running from server/omnia/)
    if (current.parent.parent / ".env").exists():
        return str(current.parent.parent / ".env")

    # Default to current directory
    return ".env"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Server settings
    port: int = 3456
    host: str = "0.0.0.0"
    debug: bool = False
    log_level: str = "INFO"

    # Record store (Supabase REST)
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    store_timeout: float = 15.0

    # LLM providers
    openai_api_key: str = ""
    deepseek_api_key: str = ""
    deepseek_base_url: str = "https://api.deepseek.com/v1"
    seo_provider: str = "deepseek"
    seo_model: str = "deepseek-chat"
    article_model: str = "gpt-4o"
    tag_model: str = "gpt-4o-mini"

    # Billing
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""

    # Shopify Admin API
    shopify_api_version: str = "2024-01"

    # Pipeline settings
    external_call_timeout: float = 30.0
    article_call_timeout: float = 120.0  # long-form HTML generation
    max_pipeline_items: int = 50

    # Cache TTLs (in seconds)
    opportunities_cache_ttl: int = 300  # 5 minutes
    articles_cache_ttl: int = 120  # 2 minutes

    class Config:
        env_file = _find_env_file()
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def store_rest_url(self) -> str:
        """Get the PostgREST base URL."""
        return self.supabase_url.rstrip("/") + "/rest/v1"

    def secrets(self) -> list[str]:
        """Secret values that must never be echoed back to callers."""
        values = [
            self.supabase_service_role_key,
            self.openai_api_key,
            self.deepseek_api_key,
            self.stripe_secret_key,
            self.stripe_webhook_secret,
        ]
        return [v for v in values if v]


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
