"""Services for the Omnia API."""

from .cache import Cache
from .store import RecordStore
from .shopify import ShopifyClient

__all__ = ["Cache", "RecordStore", "ShopifyClient"]
