"""Deal index cache and eligibility helpers."""

from .cache import CacheEvent, DealIndex, DealIndexCache
from .eligibility import vendor_has_deal_type

__all__ = ["CacheEvent", "DealIndex", "DealIndexCache", "vendor_has_deal_type"]
