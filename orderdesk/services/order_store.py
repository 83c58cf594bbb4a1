"""
Order Store Gateway

Reads and writes orders against the remote store, falling back to the
local durable cache whenever the remote side fails:

    submit        remote insert, else prepend to the tenant's local snapshot
    list_orders   retention sweep, remote read (decoded), else local snapshot
    update_status remote update scoped by id AND tenant, else local mutation
    delete        remote delete scoped by id AND tenant; failures surface

Submission and listing never raise for connectivity problems: the customer
always sees their order accepted and the operator always gets a list.

Author: Khalil Bannouri
Version: 3.0.0
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from pydantic import ValidationError
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from orderdesk import codec
from orderdesk.core.config import get_settings
from orderdesk.models import Order, OrderStatus
from orderdesk.schemas import OrderCreate, OrderItem, OrderRecord
from orderdesk.services.local_cache import LocalCache, LocalCacheError, orders_key
from orderdesk.services.remote import REMOTE_ERRORS, as_utc, utcnow, with_timeout
from orderdesk.services.retention import RetentionSweeper

logger = logging.getLogger(__name__)

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


class OrderStoreError(Exception):
    """Base error of the order store."""


class OrderStoreUnavailable(OrderStoreError):
    """Remote store failed on an operation that reports failure to the operator."""


class OrderNotFound(OrderStoreError):
    def __init__(self, order_id: int):
        super().__init__(f"Order #{order_id} not found")
        self.order_id = order_id


# =============================================================================
# ROW CONVERSION
# =============================================================================

def _load_items(raw: Any, order_id: Any) -> list[OrderItem]:
    try:
        data = json.loads(raw) if isinstance(raw, str) else (raw or [])
        return [OrderItem.model_validate(item) for item in data]
    except (ValueError, TypeError, ValidationError) as e:
        logger.warning(f"Order #{order_id} has unreadable items: {e}")
        return []


def record_from_row(row: Order) -> OrderRecord:
    """Decode a remote row into an OrderRecord."""
    meta = codec.decode(row.table_number)
    return OrderRecord(
        id=row.id,
        tenant_id=row.tenant_id,
        customer_name=row.customer_name,
        fulfillment_type=meta.fulfillment_type,
        **meta.fields(),
        items=_load_items(row.items, row.id),
        total=row.total,
        status=row.status,
        created_at=as_utc(row.created_at),
        source="remote",
    )


def _sort_newest_first(records: list[OrderRecord]) -> list[OrderRecord]:
    return sorted(records, key=lambda r: r.created_at or _OLDEST, reverse=True)


class OrderStore:
    """Remote-first order gateway with a local fallback."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cache: LocalCache,
        sweeper: Optional[RetentionSweeper] = None,
        clock: Callable[[], datetime] = utcnow,
        timeout: Optional[float] = None,
    ):
        settings = get_settings()
        self._session_factory = session_factory
        self._cache = cache
        self._clock = clock
        self._timeout = timeout if timeout is not None else settings.database_timeout_seconds
        self.sweeper = sweeper or RetentionSweeper(
            session_factory, cache, clock=clock, timeout=self._timeout
        )

    # =========================================================================
    # SUBMIT
    # =========================================================================

    async def submit(self, order: OrderCreate) -> OrderRecord:
        """Persist a new order; falls back to the local cache on any remote failure."""
        meta = order.location()
        packed = codec.encode(meta)

        try:
            row = await with_timeout(self._insert(order, packed), self._timeout)
        except REMOTE_ERRORS as e:
            logger.warning(
                f"Order submission for {order.tenant_id} failed remotely, saving locally: {e}"
            )
            return self._submit_local(order, packed)

        logger.info(f"Order #{row.id} stored for {order.tenant_id} ({meta.fulfillment_type.value})")
        return record_from_row(row)

    async def _insert(self, order: OrderCreate, packed: str) -> Order:
        async with self._session_factory() as session:
            row = Order(
                tenant_id=order.tenant_id,
                customer_name=order.customer_name,
                table_number=packed,
                items=json.dumps(
                    [item.model_dump(mode="json") for item in order.items],
                    ensure_ascii=False,
                ),
                total=order.total,
                status=OrderStatus.PENDING,
                created_at=self._clock(),
            )
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return row

    def _submit_local(self, order: OrderCreate, packed: str) -> OrderRecord:
        # Same view of the metadata a remote read would produce
        meta = codec.decode(packed)
        now = self._clock()
        stored: dict[str, OrderRecord] = {}

        def prepend(entries: Optional[list]) -> list:
            entries = entries or []
            record = OrderRecord(
                id=self._next_local_id(entries, now),
                tenant_id=order.tenant_id,
                customer_name=order.customer_name,
                fulfillment_type=meta.fulfillment_type,
                **meta.fields(),
                items=order.items,
                total=order.total,
                status=OrderStatus.PENDING,
                created_at=now,
                source="local",
            )
            stored["record"] = record
            return [record.model_dump(mode="json")] + entries

        try:
            self._cache.update(orders_key(order.tenant_id), prepend, default=[])
        except LocalCacheError as e:
            logger.error(f"Order for {order.tenant_id} could not be stored anywhere: {e}")
            raise OrderStoreUnavailable("Order could not be stored") from e

        record = stored["record"]
        logger.info(f"Order #{record.id} stored locally for {order.tenant_id}")
        return record

    @staticmethod
    def _next_local_id(entries: list, now: datetime) -> int:
        """Epoch milliseconds, bumped past any id already in the snapshot."""
        candidate = int(now.timestamp() * 1000)
        highest = max((int(e.get("id") or 0) for e in entries), default=0)
        return max(candidate, highest + 1)

    # =========================================================================
    # READ
    # =========================================================================

    async def list_orders(self, tenant_id: str) -> list[OrderRecord]:
        """Sweep stale orders, then return the tenant's orders newest first."""
        await self.sweeper.sweep(tenant_id)

        try:
            rows = await with_timeout(self._fetch(tenant_id), self._timeout)
        except REMOTE_ERRORS as e:
            logger.warning(f"Fetching orders for {tenant_id} failed, loading locally: {e}")
            return self.local_orders(tenant_id)

        return [record_from_row(row) for row in rows]

    async def _fetch(self, tenant_id: str) -> list[Order]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Order)
                .where(Order.tenant_id == tenant_id)
                .order_by(Order.created_at.desc(), Order.id.desc())
            )
            return list(result.scalars().all())

    async def get(self, tenant_id: str, order_id: int) -> OrderRecord:
        """Single order of the tenant, remote first."""
        try:
            row = await with_timeout(self._fetch_one(tenant_id, order_id), self._timeout)
        except REMOTE_ERRORS as e:
            logger.warning(f"Fetching order #{order_id} failed, loading locally: {e}")
            row = None

        if row is not None:
            return record_from_row(row)

        for record in self.local_orders(tenant_id):
            if record.id == order_id:
                return record
        raise OrderNotFound(order_id)

    async def _fetch_one(self, tenant_id: str, order_id: int) -> Optional[Order]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Order).where(Order.id == order_id, Order.tenant_id == tenant_id)
            )
            return result.scalar_one_or_none()

    def local_orders(self, tenant_id: str) -> list[OrderRecord]:
        """The tenant's cached snapshot, newest first."""
        try:
            entries = self._cache.get(orders_key(tenant_id), [])
        except LocalCacheError as e:
            logger.error(f"Local order cache unavailable for {tenant_id}: {e}")
            return []

        records = []
        for entry in entries or []:
            try:
                record = OrderRecord.model_validate(entry)
            except ValidationError as e:
                logger.warning(f"Skipping unreadable cached order for {tenant_id}: {e}")
                continue
            if record.tenant_id == tenant_id:
                records.append(record)
        return _sort_newest_first(records)

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    async def update_status(self, tenant_id: str, order_id: int, status: OrderStatus) -> bool:
        """
        Set an order's status. Returns True when the remote store confirmed it.

        The remote update is filtered by both id and tenant, so an id
        belonging to another tenant is never touched. When the remote call
        fails, or matches nothing because the order only exists locally, the
        cached snapshot is updated instead.
        """
        status = OrderStatus(status)
        try:
            matched = await with_timeout(
                self._update_remote(tenant_id, order_id, status), self._timeout
            )
        except REMOTE_ERRORS as e:
            logger.warning(f"Updating order #{order_id} failed remotely, updating locally: {e}")
            self._update_local(tenant_id, order_id, status)
            return False

        if not matched:
            self._update_local(tenant_id, order_id, status)
            return False

        logger.info(f"Order #{order_id} of {tenant_id} is now {status.value}")
        return True

    async def _update_remote(self, tenant_id: str, order_id: int, status: OrderStatus) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                update(Order)
                .where(Order.id == order_id, Order.tenant_id == tenant_id)
                .values(status=status)
            )
            await session.commit()
            return result.rowcount or 0

    def _update_local(self, tenant_id: str, order_id: int, status: OrderStatus) -> bool:
        changed = False

        def set_status(entries: Optional[list]) -> list:
            nonlocal changed
            for entry in entries or []:
                if entry.get("id") == order_id and entry.get("tenant_id") == tenant_id:
                    entry["status"] = status.value
                    changed = True
            return entries or []

        try:
            self._cache.update(orders_key(tenant_id), set_status, default=[])
        except LocalCacheError as e:
            logger.error(f"Local status update of order #{order_id} failed: {e}")
            return False
        return changed

    async def delete(self, tenant_id: str, order_id: int) -> None:
        """
        Delete an order of the tenant.

        Raises:
            OrderStoreUnavailable: the remote delete failed (the local copy,
                if any, is still removed)
            OrderNotFound: neither store had the order
        """
        removed_locally = self._delete_local(tenant_id, order_id)

        try:
            deleted = await with_timeout(
                self._delete_remote(tenant_id, order_id), self._timeout
            )
        except REMOTE_ERRORS as e:
            logger.error(f"Deleting order #{order_id} of {tenant_id} failed: {e}")
            raise OrderStoreUnavailable(f"Could not delete order #{order_id}") from e

        if not deleted and not removed_locally:
            raise OrderNotFound(order_id)
        logger.info(f"Order #{order_id} of {tenant_id} deleted")

    async def _delete_remote(self, tenant_id: str, order_id: int) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                delete(Order).where(Order.id == order_id, Order.tenant_id == tenant_id)
            )
            await session.commit()
            return result.rowcount or 0

    def _delete_local(self, tenant_id: str, order_id: int) -> bool:
        removed = False

        def drop(entries: Optional[list]) -> list:
            nonlocal removed
            kept = [
                e for e in entries or []
                if not (e.get("id") == order_id and e.get("tenant_id") == tenant_id)
            ]
            removed = len(kept) != len(entries or [])
            return kept

        try:
            if self._cache.get(orders_key(tenant_id)):
                self._cache.update(orders_key(tenant_id), drop, default=[])
        except LocalCacheError as e:
            logger.warning(f"Local delete of order #{order_id} failed: {e}")
        return removed

    # =========================================================================
    # HEALTH
    # =========================================================================

    async def health_check(self) -> bool:
        try:
            await with_timeout(self._ping(), self._timeout)
            return True
        except REMOTE_ERRORS as e:
            logger.error(f"Remote store health check failed: {e}")
            return False

    async def _ping(self) -> None:
        async with self._session_factory() as session:
            await session.execute(select(1))
