"""
Operator preferences kept in the local cache, independent of tenant data.
"""

import logging

from orderdesk.services.local_cache import AUTO_PRINT_KEY, LocalCache, LocalCacheError

logger = logging.getLogger(__name__)


class Preferences:
    """Auto-print toggle persisted in the cache's preference slot."""

    def __init__(self, cache: LocalCache):
        self._cache = cache

    @property
    def auto_print(self) -> bool:
        try:
            return self._cache.get(AUTO_PRINT_KEY, False) is True
        except LocalCacheError as e:
            logger.warning(f"Auto-print preference unavailable, assuming off: {e}")
            return False

    def set_auto_print(self, enabled: bool) -> bool:
        self._cache.set(AUTO_PRINT_KEY, bool(enabled))
        logger.info(f"Auto-print {'enabled' if enabled else 'disabled'}")
        return bool(enabled)
