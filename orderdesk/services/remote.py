"""
Helpers shared by everything that talks to the remote order store.
"""

import asyncio
from datetime import datetime, timezone
from typing import Awaitable, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError

T = TypeVar("T")

# Failures that mean "the remote store is unreachable or refused the call".
# They are absorbed by the local fallback instead of reaching the caller.
REMOTE_ERRORS = (SQLAlchemyError, OSError, asyncio.TimeoutError)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive timestamps read back from the store."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


async def with_timeout(call: Awaitable[T], timeout: Optional[float]) -> T:
    if timeout is None:
        return await call
    return await asyncio.wait_for(call, timeout)
