"""
Local Durable Cache with Concurrency Control

File-backed key/value store used when the remote order store is unreachable.
Each key is one JSON file in the data directory, guarded by a sibling
`.lock` file so concurrent workers never interleave a read-modify-write.

Author: Khalil Bannouri
Version: 3.0.0
"""

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Callable, Optional, Union

from filelock import FileLock, Timeout

from orderdesk.core.config import get_settings

logger = logging.getLogger(__name__)

ORDERS_KEY_PREFIX = "restaurant_orders"
AUTO_PRINT_KEY = "auto_print"

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


def orders_key(tenant_id: str) -> str:
    """Storage key of a tenant's order snapshot."""
    return f"{ORDERS_KEY_PREFIX}:{tenant_id}"


class LocalCacheError(Exception):
    """Raised when the cache cannot be locked or written."""


class LocalCache:
    """Thread-safe JSON key/value cache."""

    def __init__(
        self,
        data_dir: Optional[Union[str, Path]] = None,
        lock_timeout: Optional[float] = None,
    ):
        settings = get_settings()
        self.data_dir = Path(data_dir if data_dir is not None else settings.data_directory)
        self.lock_timeout = lock_timeout if lock_timeout is not None else settings.cache_lock_timeout

    def _ensure_data_dir(self) -> None:
        """Create data directory if needed."""
        if not self.data_dir.exists():
            self.data_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created data directory: {self.data_dir}")

    def _path(self, key: str) -> Path:
        return self.data_dir / f"{_UNSAFE_KEY_CHARS.sub('_', key)}.json"

    def _lock(self, key: str) -> FileLock:
        return FileLock(str(self._path(key)) + ".lock", timeout=self.lock_timeout)

    def _read(self, path: Path, default: Any) -> Any:
        if not path.exists():
            return default
        try:
            with path.open("r", encoding="utf-8") as fh:
                return json.load(fh)
        except (OSError, ValueError) as e:
            logger.warning(f"Error reading {path}: {e}")
            return default

    def _write(self, path: Path, value: Any) -> None:
        tmp = path.with_suffix(path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as fh:
            json.dump(value, fh, ensure_ascii=False, default=str)
        os.replace(tmp, path)

    def get(self, key: str, default: Any = None) -> Any:
        """Read the value stored under `key`, or `default`."""
        self._ensure_data_dir()
        try:
            with self._lock(key):
                return self._read(self._path(key), default)
        except Timeout:
            logger.error(f"Lock timeout reading cache key {key}")
            raise LocalCacheError(f"Lock timeout ({self.lock_timeout}s) for {key}")

    def set(self, key: str, value: Any) -> None:
        """Replace the value stored under `key`."""
        self._ensure_data_dir()
        try:
            with self._lock(key):
                self._write(self._path(key), value)
                logger.debug(f"Cache key {key} written")
        except Timeout:
            logger.error(f"Lock timeout writing cache key {key}")
            raise LocalCacheError(f"Lock timeout ({self.lock_timeout}s) for {key}")
        except OSError as e:
            raise LocalCacheError(f"Could not write {key}: {e}") from e

    def update(self, key: str, mutate: Callable[[Any], Any], default: Any = None) -> Any:
        """
        Read-modify-write under a single lock.

        `mutate` receives the current value (or `default`) and returns the
        new one, which is written back and returned.
        """
        self._ensure_data_dir()
        try:
            with self._lock(key):
                path = self._path(key)
                value = mutate(self._read(path, default))
                self._write(path, value)
                return value
        except Timeout:
            logger.error(f"Lock timeout updating cache key {key}")
            raise LocalCacheError(f"Lock timeout ({self.lock_timeout}s) for {key}")
        except OSError as e:
            raise LocalCacheError(f"Could not write {key}: {e}") from e

    def remove(self, key: str) -> bool:
        """Delete `key`; returns whether something was removed."""
        path = self._path(key)
        try:
            with self._lock(key):
                if path.exists():
                    path.unlink()
                    logger.info(f"Cache key {key} removed")
                    return True
            return False
        except Timeout:
            logger.error(f"Lock timeout removing cache key {key}")
            raise LocalCacheError(f"Lock timeout ({self.lock_timeout}s) for {key}")

    def health_check(self) -> bool:
        """Check the data directory is writable."""
        try:
            self._ensure_data_dir()
            return os.access(self.data_dir, os.W_OK)
        except OSError:
            return False
