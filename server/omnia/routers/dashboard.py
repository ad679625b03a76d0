"""Dashboard cache refresh."""

import time
import logging
from datetime import datetime, timezone
from fastapi import APIRouter, Depends

from ..dependencies import record_store
from ..services.cache import cache
from ..services.store import RecordStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["dashboard"])

DEFAULT_CACHES = [
    "fast_dashboard_cache",
    "fast_products_list_cache",
    "product_type_statistics_cache",
]


@router.post("/cache/refresh")
async def refresh_caches(store: RecordStore = Depends(record_store)):
    """Refresh the database-side dashboard caches and drop in-process entries."""
    started = time.monotonic()
    logger.info("Starting cache refresh")

    data = await store.rpc("refresh_all_caches")
    dropped = len(cache)
    cache.invalidate()

    duration_ms = int((time.monotonic() - started) * 1000)
    logger.info("Cache refresh completed in %d ms", duration_ms)

    refreshed = data.get("caches_refreshed") if isinstance(data, dict) else None
    return {
        "success": True,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "duration_ms": duration_ms,
        "caches_refreshed": refreshed or DEFAULT_CACHES,
        "local_entries_dropped": dropped,
        "message": "All dashboard caches refreshed successfully",
    }
