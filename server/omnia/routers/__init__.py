"""API Routers for the Omnia API."""

from .stats import router as stats_router
from .seo import router as seo_router
from .blog import router as blog_router
from .products import router as products_router
from .billing import router as billing_router
from .dashboard import router as dashboard_router
from .orders import router as orders_router

__all__ = [
    "stats_router",
    "seo_router",
    "blog_router",
    "products_router",
    "billing_router",
    "dashboard_router",
    "orders_router",
]
