import json

import pytest
from sqlalchemy import func, select

from orderdesk.models import FulfillmentType, Order, OrderStatus
from orderdesk.services.local_cache import orders_key
from orderdesk.services.order_store import (
    OrderNotFound,
    OrderStore,
    OrderStoreUnavailable,
)
from tests.conftest import TENANT_A, TENANT_B, make_delivery, make_order


async def test_submit_stores_remotely_and_list_decodes(store):
    record = await store.submit(make_order())

    assert record.source == "remote"
    assert record.status == OrderStatus.PENDING
    orders = await store.list_orders(TENANT_A)
    assert [o.id for o in orders] == [record.id]
    assert orders[0].fulfillment_type == FulfillmentType.DINE_IN
    assert orders[0].table_number == "7"
    assert orders[0].verification_code == "4821"
    assert [item.dish.name for item in orders[0].items] == ["Tajine", "Mint Tea"]


async def test_metadata_travels_packed_in_table_column(store, session_maker):
    record = await store.submit(make_delivery())

    async with session_maker() as session:
        row = (await session.execute(select(Order).where(Order.id == record.id))).scalar_one()

    assert row.table_number == "DELIVERY_V1|||0612345678|||12 Rue Atlas, Fes"
    assert json.loads(row.items)[0]["dish"] == {"id": "1", "name": "Tajine", "price": 45.0}
    assert record.phone == "0612345678"
    assert record.address == "12 Rue Atlas, Fes"
    assert record.table_number is None


async def test_list_is_newest_first_and_tenant_scoped(store, clock):
    first = await store.submit(make_order())
    clock.advance(minutes=5)
    second = await store.submit(make_order())
    await store.submit(make_order(TENANT_B))

    orders = await store.list_orders(TENANT_A)

    assert [o.id for o in orders] == [second.id, first.id]


async def test_submit_falls_back_to_local_cache(offline_store, clock, cache):
    record = await offline_store.submit(make_order())

    assert record.source == "local"
    assert record.status == OrderStatus.PENDING
    assert record.id == int(clock.now.timestamp() * 1000)
    assert record.created_at == clock.now
    assert cache.get(orders_key(TENANT_A))[0]["id"] == record.id


async def test_locally_submitted_order_appears_in_offline_list(offline_store):
    record = await offline_store.submit(make_delivery())

    orders = await offline_store.list_orders(TENANT_A)

    assert [o.id for o in orders] == [record.id]
    assert orders[0].source == "local"
    assert orders[0].fulfillment_type == FulfillmentType.DELIVERY
    assert orders[0].phone == "0612345678"


async def test_local_ids_stay_unique_within_the_same_millisecond(offline_store):
    first = await offline_store.submit(make_order())
    second = await offline_store.submit(make_order())

    assert second.id == first.id + 1
    orders = await offline_store.list_orders(TENANT_A)
    assert {o.id for o in orders} == {first.id, second.id}


async def test_local_copy_is_sanitized_like_remote(offline_store):
    record = await offline_store.submit(make_order(table_number="3|||4"))
    assert record.table_number == "3 4"


async def test_update_status_is_scoped_by_tenant(store):
    record = await store.submit(make_order(TENANT_A))

    confirmed = await store.update_status(TENANT_B, record.id, OrderStatus.CANCELLED)

    assert confirmed is False
    orders = await store.list_orders(TENANT_A)
    assert orders[0].status == OrderStatus.PENDING


async def test_update_status_twice_is_idempotent(store):
    record = await store.submit(make_order())

    assert await store.update_status(TENANT_A, record.id, OrderStatus.COMPLETED) is True
    assert await store.update_status(TENANT_A, record.id, OrderStatus.COMPLETED) is True

    orders = await store.list_orders(TENANT_A)
    assert orders[0].status == OrderStatus.COMPLETED


async def test_update_status_offline_mutates_cache(offline_store):
    record = await offline_store.submit(make_order())

    confirmed = await offline_store.update_status(TENANT_A, record.id, OrderStatus.PREPARING)

    assert confirmed is False
    orders = await offline_store.list_orders(TENANT_A)
    assert orders[0].status == OrderStatus.PREPARING


async def test_update_status_reaches_locally_stored_order_when_back_online(
    offline_store, session_maker, cache, clock
):
    record = await offline_store.submit(make_order())
    online = OrderStore(session_maker, cache, clock=clock)

    assert await online.update_status(TENANT_A, record.id, OrderStatus.COMPLETED) is False
    assert online.local_orders(TENANT_A)[0].status == OrderStatus.COMPLETED


async def test_get_single_order(store):
    record = await store.submit(make_order())

    assert (await store.get(TENANT_A, record.id)).id == record.id
    with pytest.raises(OrderNotFound):
        await store.get(TENANT_B, record.id)


async def test_delete_removes_order(store, session_maker):
    record = await store.submit(make_order())

    await store.delete(TENANT_A, record.id)

    async with session_maker() as session:
        count = (await session.execute(select(func.count(Order.id)))).scalar()
    assert count == 0


async def test_delete_other_tenants_order_is_not_found(store):
    record = await store.submit(make_order(TENANT_A))

    with pytest.raises(OrderNotFound):
        await store.delete(TENANT_B, record.id)
    assert len(await store.list_orders(TENANT_A)) == 1


async def test_delete_offline_reports_failure_but_drops_local_copy(offline_store):
    record = await offline_store.submit(make_order())

    with pytest.raises(OrderStoreUnavailable):
        await offline_store.delete(TENANT_A, record.id)

    assert offline_store.local_orders(TENANT_A) == []


async def test_health_check(store, offline_store):
    assert await store.health_check() is True
    assert await offline_store.health_check() is False
