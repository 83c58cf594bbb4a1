from datetime import date, datetime, timedelta, timezone

import pytest

from orderdesk.models import OrderStatus
from orderdesk.schemas import AnalyticsRange, OrderRecord
from orderdesk.services.analytics import summarize

NOW = datetime(2026, 10, 18, 15, 0, tzinfo=timezone.utc)


def _order(order_id, days_ago=0, status=OrderStatus.COMPLETED, items=(("Tajine", 45.0, 1),)):
    lines = [
        {"dish": {"id": name, "name": name, "price": price}, "quantity": qty}
        for name, price, qty in items
    ]
    return OrderRecord(
        id=order_id,
        tenant_id="tenant-a",
        customer_name="Yassine",
        table_number="7",
        items=lines,
        total=sum(price * qty for _, price, qty in items),
        status=status,
        created_at=NOW - timedelta(days=days_ago),
    )


def test_today_counts_only_completed_orders():
    orders = [
        _order(1),
        _order(2, items=(("Couscous", 60.0, 1),)),
        _order(3, status=OrderStatus.PENDING),
        _order(4, status=OrderStatus.CANCELLED),
        _order(5, days_ago=1),
    ]

    summary = summarize(orders, AnalyticsRange.TODAY, now=NOW)

    assert summary.period_count == 2
    assert summary.period_revenue == 105.0
    assert summary.average_order_value == 52.5


def test_week_and_month_windows():
    orders = [_order(1), _order(2, days_ago=7), _order(3, days_ago=8), _order(4, days_ago=30)]

    assert summarize(orders, AnalyticsRange.WEEK, now=NOW).period_count == 2
    assert summarize(orders, AnalyticsRange.MONTH, now=NOW).period_count == 4
    assert summarize(orders, AnalyticsRange.ALL, now=NOW).period_count == 4


def test_custom_date():
    orders = [_order(1), _order(2, days_ago=3)]

    summary = summarize(orders, AnalyticsRange.CUSTOM, custom_date=date(2026, 10, 15), now=NOW)

    assert summary.period_count == 1
    assert summary.custom_date == date(2026, 10, 15)


def test_custom_range_requires_date():
    with pytest.raises(ValueError):
        summarize([_order(1)], AnalyticsRange.CUSTOM, now=NOW)


def test_best_sellers_by_quantity_ties_alphabetical():
    orders = [
        _order(1, items=(("Tajine", 45.0, 2), ("Mint Tea", 10.0, 3))),
        _order(2, items=(("Couscous", 60.0, 2), ("Mint Tea", 10.0, 1))),
    ]

    summary = summarize(orders, AnalyticsRange.TODAY, now=NOW)

    assert [(b.name, b.count) for b in summary.best_sellers] == [
        ("Mint Tea", 4),
        ("Couscous", 2),
        ("Tajine", 2),
    ]
    assert summary.max_sold_count == 4


def test_best_sellers_capped_at_five():
    names = ["A", "B", "C", "D", "E", "F"]
    orders = [_order(i, items=((name, 5.0, 1),)) for i, name in enumerate(names)]

    assert len(summarize(orders, AnalyticsRange.TODAY, now=NOW).best_sellers) == 5


def test_empty_period():
    summary = summarize([], AnalyticsRange.TODAY, now=NOW)

    assert summary.period_count == 0
    assert summary.period_revenue == 0.0
    assert summary.average_order_value == 0.0
    assert summary.best_sellers == []
    assert summary.max_sold_count == 0
