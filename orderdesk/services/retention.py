"""
Retention Sweeper

Deletes a tenant's orders older than the retention window, both from the
remote store and from the local snapshot. Invoked at the start of every
order listing rather than on its own timer.

Author: Khalil Bannouri
Version: 3.0.0
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from pydantic import TypeAdapter, ValidationError
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from orderdesk.core.config import get_settings
from orderdesk.models import Order
from orderdesk.services.local_cache import LocalCache, LocalCacheError, orders_key
from orderdesk.services.remote import REMOTE_ERRORS, as_utc, utcnow, with_timeout

logger = logging.getLogger(__name__)

_timestamp = TypeAdapter(datetime)


@dataclass
class SweepResult:
    """Outcome of one sweep. `remote_deleted` is None when the remote call failed."""
    cutoff: datetime
    remote_deleted: Optional[int]
    local_deleted: int


def _created_at(entry: dict[str, Any]) -> Optional[datetime]:
    raw = entry.get("created_at")
    if not raw:
        return None
    try:
        return as_utc(_timestamp.validate_python(raw))
    except ValidationError:
        return None


class RetentionSweeper:
    """Best-effort eviction of stale orders."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cache: LocalCache,
        retention_hours: Optional[float] = None,
        clock: Callable[[], datetime] = utcnow,
        timeout: Optional[float] = None,
    ):
        settings = get_settings()
        self._session_factory = session_factory
        self._cache = cache
        self.retention = timedelta(
            hours=retention_hours if retention_hours is not None else settings.retention_hours
        )
        self._clock = clock
        self._timeout = timeout

    def cutoff(self) -> datetime:
        return self._clock() - self.retention

    async def sweep(self, tenant_id: str) -> SweepResult:
        cutoff = self.cutoff()
        remote_deleted = await self._sweep_remote(tenant_id, cutoff)
        local_deleted = self._sweep_local(tenant_id, cutoff)

        if remote_deleted or local_deleted:
            logger.info(
                f"Retention sweep for {tenant_id}: "
                f"{remote_deleted or 0} remote, {local_deleted} local orders older than {cutoff.isoformat()}"
            )
        return SweepResult(cutoff=cutoff, remote_deleted=remote_deleted, local_deleted=local_deleted)

    async def _delete_stale(self, tenant_id: str, cutoff: datetime) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                delete(Order).where(
                    Order.tenant_id == tenant_id,
                    Order.created_at < cutoff,
                )
            )
            await session.commit()
            return result.rowcount or 0

    async def _sweep_remote(self, tenant_id: str, cutoff: datetime) -> Optional[int]:
        try:
            return await with_timeout(self._delete_stale(tenant_id, cutoff), self._timeout)
        except REMOTE_ERRORS as e:
            logger.warning(f"Remote retention sweep failed for {tenant_id}: {e}")
            return None

    def _sweep_local(self, tenant_id: str, cutoff: datetime) -> int:
        key = orders_key(tenant_id)
        dropped = 0

        def keep_fresh(entries: Optional[list]) -> list:
            nonlocal dropped
            fresh = []
            for entry in entries or []:
                created = _created_at(entry)
                # Entries without a timestamp are kept
                if created is None or created >= cutoff:
                    fresh.append(entry)
            dropped = len(entries or []) - len(fresh)
            return fresh

        try:
            if not self._cache.get(key):
                return 0
            self._cache.update(key, keep_fresh, default=[])
            return dropped
        except LocalCacheError as e:
            logger.warning(f"Local retention sweep failed for {tenant_id}: {e}")
            return 0
