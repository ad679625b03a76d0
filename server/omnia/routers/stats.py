"""Health check endpoint."""

import platform
import sys
from fastapi import APIRouter

from ..config import get_settings
from ..services.cache import cache

router = APIRouter(tags=["stats"])

VERSION = "1.0.0"


@router.get("/health")
async def health_check():
    """Health check and status endpoint."""
    settings = get_settings()

    return {
        "status": "ok",
        "version": VERSION,
        "integrations": {
            "store": bool(settings.supabase_url and settings.supabase_service_role_key),
            "openai": bool(settings.openai_api_key),
            "deepseek": bool(settings.deepseek_api_key),
            "stripe": bool(settings.stripe_secret_key and settings.stripe_webhook_secret),
        },
        "cacheEntries": len(cache),
        "platform": platform.system().lower(),
        "pythonVersion": sys.version,
    }
