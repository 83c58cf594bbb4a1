"""
Shared fixtures: a SQLite remote store, an unreachable one, a temp cache
and a controllable clock.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from orderdesk.database import Base, build_engine, build_session_maker
from orderdesk.models import FulfillmentType
from orderdesk.schemas import OrderCreate, OrderRecord
from orderdesk.services.local_cache import LocalCache
from orderdesk.services.notifications.dispatcher import NotificationDispatcher
from orderdesk.services.notifications.mock import MockAlertService, MockPrinterService
from orderdesk.services.order_store import OrderStore
from orderdesk.services.preferences import Preferences

TENANT_A = "tenant-a"
TENANT_B = "tenant-b"


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_order(tenant_id: str = TENANT_A, **overrides) -> OrderCreate:
    data = {
        "tenant_id": tenant_id,
        "customer_name": "Yassine",
        "fulfillment_type": FulfillmentType.DINE_IN,
        "table_number": "7",
        "verification_code": "4821",
        "items": [
            {"dish": {"id": "1", "name": "Tajine", "price": 45.0}, "quantity": 2},
            {"dish": {"id": "2", "name": "Mint Tea", "price": 10.0}, "quantity": 1},
        ],
        "total": 100.0,
    }
    data.update(overrides)
    return OrderCreate(**data)


def make_delivery(tenant_id: str = TENANT_A, **overrides) -> OrderCreate:
    data = {
        "fulfillment_type": FulfillmentType.DELIVERY,
        "table_number": None,
        "verification_code": None,
        "phone": "0612345678",
        "address": "12 Rue Atlas, Fes",
    }
    data.update(overrides)
    return make_order(tenant_id, **data)


def make_record(order_id: int, tenant_id: str = TENANT_A, created_at: Optional[datetime] = None) -> OrderRecord:
    return OrderRecord(
        id=order_id,
        tenant_id=tenant_id,
        customer_name="Yassine",
        table_number="7",
        verification_code="4821",
        items=[{"dish": {"id": "1", "name": "Tajine", "price": 45.0}, "quantity": 1}],
        total=45.0,
        created_at=created_at,
    )


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
async def engine(tmp_path):
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'remote.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest.fixture
async def offline_session_maker(tmp_path):
    # SQLite cannot open a file in a directory that does not exist
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'unreachable' / 'remote.db'}")
    yield build_session_maker(eng)
    await eng.dispose()


@pytest.fixture
def cache(tmp_path):
    return LocalCache(data_dir=tmp_path / "cache", lock_timeout=2)


@pytest.fixture
def store(session_maker, cache, clock):
    return OrderStore(session_maker, cache, clock=clock)


@pytest.fixture
def offline_store(offline_session_maker, cache, clock):
    return OrderStore(offline_session_maker, cache, clock=clock)


@pytest.fixture
def preferences(cache):
    return Preferences(cache)


@pytest.fixture
def printer():
    return MockPrinterService()


@pytest.fixture
def alert():
    return MockAlertService()


@pytest.fixture
def dispatcher(printer, alert, preferences):
    return NotificationDispatcher(printer, alert, preferences)
