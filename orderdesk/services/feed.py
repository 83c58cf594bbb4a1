"""
Order Feed and Novelty Tracker

An operator session that watches a tenant's orders:

    idle -> polling_foreground -> polling_background (repeating) -> stopped

The first successful poll only seeds the tracker, so orders that already
existed when the session opened never ring or print. The session's opening
time is remembered as well: an order that shows up later (for example once
the remote store answers again after an outage) but was created before the
session opened is still not new. Every other order not seen before is handed
to the notification dispatcher.

Feeds of the same tenant share the set of order ids already dispatched, so a
second open dashboard never prints or rings a second time. A feed whose
operator stopped reading it for `session_idle_seconds` stops itself and is
dropped from the registry.

Author: Khalil Bannouri
Version: 3.0.0
"""

import asyncio
import logging
import time
import uuid
from contextlib import suppress
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Iterable, Optional

from orderdesk.core.config import get_settings
from orderdesk.schemas import OrderRecord
from orderdesk.services.notifications.dispatcher import DispatchReport, NotificationDispatcher
from orderdesk.services.order_store import OrderStore
from orderdesk.services.remote import utcnow

logger = logging.getLogger(__name__)


class FeedState(str, Enum):
    IDLE = "idle"
    POLLING_FOREGROUND = "polling_foreground"
    POLLING_BACKGROUND = "polling_background"
    STOPPED = "stopped"


@dataclass
class PollOutcome:
    """Classification of one poll result."""
    orders: list[OrderRecord]
    new_orders: list[OrderRecord]
    seeding: bool
    previous_count: int

    @property
    def count(self) -> int:
        return len(self.orders)

    @property
    def count_increased(self) -> bool:
        return self.count > self.previous_count


@dataclass
class NoveltyTracker:
    """Order ids already surfaced to the operator in this session."""
    seen: set[int] = field(default_factory=set)
    seeded: bool = False
    previous_count: int = 0
    clock: Callable[[], datetime] = utcnow
    opened_at: Optional[datetime] = None

    def mark_opened(self) -> None:
        """Record when the session started looking; later calls are no-ops."""
        if self.opened_at is None:
            self.opened_at = self.clock()

    def _pre_existing(self, order: OrderRecord) -> bool:
        return (
            order.created_at is not None
            and self.opened_at is not None
            and order.created_at < self.opened_at
        )

    def classify(self, orders: Iterable[OrderRecord]) -> PollOutcome:
        orders = list(orders)
        previous = self.previous_count

        if not self.seeded:
            # An empty first result still counts as seeding
            self.mark_opened()
            self.seen.update(o.id for o in orders)
            self.seeded = True
            self.previous_count = len(orders)
            return PollOutcome(orders=orders, new_orders=[], seeding=True, previous_count=previous)

        new_orders = []
        for order in orders:
            if order.id in self.seen:
                continue
            self.seen.add(order.id)
            if self._pre_existing(order):
                logger.debug(f"Order #{order.id} predates the session, not treated as new")
                continue
            new_orders.append(order)

        self.previous_count = len(orders)
        return PollOutcome(orders=orders, new_orders=new_orders, seeding=False, previous_count=previous)


class OrderFeed:
    """Polls one tenant's orders and dispatches notifications for new ones."""

    def __init__(
        self,
        store: OrderStore,
        tenant_id: str,
        dispatcher: NotificationDispatcher,
        interval: Optional[float] = None,
        tracker: Optional[NoveltyTracker] = None,
        clock: Callable[[], datetime] = utcnow,
        idle_timeout: Optional[float] = None,
    ):
        settings = get_settings()
        self.store = store
        self.tenant_id = tenant_id
        self.dispatcher = dispatcher
        self.interval = interval if interval is not None else settings.poll_interval_seconds
        self.idle_timeout = (
            idle_timeout if idle_timeout is not None else settings.session_idle_seconds
        )
        self.tracker = tracker or NoveltyTracker(clock=clock)

        # Ids already dispatched; the registry shares one set per tenant
        self.dispatched: set[int] = set()

        self.state = FeedState.IDLE
        self.loading = False
        self.orders: list[OrderRecord] = []
        self.last_outcome: Optional[PollOutcome] = None
        self.last_report: Optional[DispatchReport] = None
        self.last_polled_at: Optional[datetime] = None
        self.skipped_polls = 0

        self._in_flight = False
        self._task: Optional[asyncio.Task] = None
        self._last_touched = time.monotonic()

    @property
    def new_order_ids(self) -> list[int]:
        if self.last_outcome is None:
            return []
        return [o.id for o in self.last_outcome.new_orders]

    def touch(self) -> None:
        """The operator looked at the feed."""
        self._last_touched = time.monotonic()

    @property
    def idle(self) -> bool:
        return time.monotonic() - self._last_touched >= self.idle_timeout

    @property
    def expired(self) -> bool:
        return self.state == FeedState.STOPPED or self.idle

    def _claim(self, orders: list[OrderRecord]) -> list[OrderRecord]:
        claimed = []
        for order in orders:
            if order.id not in self.dispatched:
                self.dispatched.add(order.id)
                claimed.append(order)
        return claimed

    async def poll(self, background: bool = True) -> Optional[PollOutcome]:
        """
        Fetch, classify, dispatch. Returns None when skipped because a
        previous poll of this feed is still running.
        """
        if self._in_flight:
            self.skipped_polls += 1
            logger.debug(f"Poll for {self.tenant_id} skipped, previous one still in flight")
            return None

        self._in_flight = True
        if not background:
            self.loading = True
        try:
            self.tracker.mark_opened()
            orders = await self.store.list_orders(self.tenant_id)
            outcome = self.tracker.classify(orders)
            report = await self.dispatcher.dispatch(self.tenant_id, self._claim(outcome.new_orders))

            self.orders = outcome.orders
            self.last_outcome = outcome
            self.last_report = report
            self.last_polled_at = utcnow()
            return outcome
        finally:
            self._in_flight = False
            if not background:
                self.loading = False

    async def _safe_poll(self, background: bool) -> Optional[PollOutcome]:
        try:
            return await self.poll(background=background)
        except Exception as e:
            logger.exception(f"Error polling orders for {self.tenant_id}: {e}")
            return None

    async def start(self) -> None:
        """Foreground load, then schedule background refreshes."""
        if self._task is not None or self.state == FeedState.STOPPED:
            return

        self.state = FeedState.POLLING_FOREGROUND
        await self._safe_poll(background=False)
        if self.state == FeedState.STOPPED:
            return

        self.state = FeedState.POLLING_BACKGROUND
        self._task = asyncio.create_task(self._run(), name=f"order-feed-{self.tenant_id}")

    async def refresh(self) -> Optional[PollOutcome]:
        """Manual refresh requested by the operator."""
        self.touch()
        return await self._safe_poll(background=False)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            if self.idle:
                logger.info(
                    f"Order feed for {self.tenant_id} unread for {self.idle_timeout:.0f}s, stopping"
                )
                self.state = FeedState.STOPPED
                self._task = None
                return
            await self._safe_poll(background=True)

    async def stop(self) -> None:
        """Cancel the repeating poll; the tracker is discarded with the feed."""
        self.state = FeedState.STOPPED
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        logger.info(f"Order feed for {self.tenant_id} stopped")


class SessionRegistry:
    """
    Open order feeds keyed by session id.

    Each session owns its tracker. Feeds of one tenant share the set of
    dispatched order ids, which is dropped with the tenant's last feed.
    """

    def __init__(self, feed_factory: Callable[[str], OrderFeed]):
        self._feed_factory = feed_factory
        self._feeds: dict[str, OrderFeed] = {}
        self._dispatched: dict[str, set[int]] = {}

    def __len__(self) -> int:
        return len(self._feeds)

    async def open(self, tenant_id: str) -> tuple[str, OrderFeed]:
        await self.reap()

        session_id = uuid.uuid4().hex
        feed = self._feed_factory(tenant_id)
        feed.dispatched = self._dispatched.setdefault(tenant_id, set())
        self._feeds[session_id] = feed
        await feed.start()
        logger.info(f"Order feed session {session_id} opened for {tenant_id}")
        return session_id, feed

    def get(self, session_id: str, tenant_id: Optional[str] = None) -> OrderFeed:
        """Raises KeyError when unknown, expired or owned by another tenant."""
        feed = self._feeds[session_id]
        if tenant_id is not None and feed.tenant_id != tenant_id:
            raise KeyError(session_id)
        if feed.expired:
            # An idle feed stops itself on its next tick
            self._discard(session_id)
            raise KeyError(session_id)
        feed.touch()
        return feed

    def _discard(self, session_id: str) -> OrderFeed:
        feed = self._feeds.pop(session_id)
        if not any(f.tenant_id == feed.tenant_id for f in self._feeds.values()):
            self._dispatched.pop(feed.tenant_id, None)
        return feed

    async def reap(self) -> int:
        """Stop and drop expired feeds; returns how many were removed."""
        expired = [sid for sid, feed in self._feeds.items() if feed.expired]
        for session_id in expired:
            await self._discard(session_id).stop()
        if expired:
            logger.info(f"Reaped {len(expired)} expired order feed session(s)")
        return len(expired)

    async def close(self, session_id: str, tenant_id: Optional[str] = None) -> None:
        feed = self._feeds[session_id]
        if tenant_id is not None and feed.tenant_id != tenant_id:
            raise KeyError(session_id)
        await self._discard(session_id).stop()

    async def close_all(self) -> None:
        for session_id in list(self._feeds):
            await self.close(session_id)
