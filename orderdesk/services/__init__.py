"""
                        Services Module

Order pipeline services:
    - local_cache: File-backed fallback store
    - order_store: Remote-first gateway with local fallback
    - retention: Stale order eviction
    - feed: Polling feed and novelty tracking
    - notifications: Printer / alert side effects (Mock and Real)
"""

from orderdesk.services.local_cache import LocalCache
from orderdesk.services.order_store import OrderStore

__all__ = ["LocalCache", "OrderStore"]
