"""
Order analytics for the operator dashboard.

Revenue, order count, average order value and best sellers over completed
orders in a day-granular period (today, last 7 days, last 30 days, a chosen
date, or everything still retained).
"""

from datetime import date, datetime, timedelta
from typing import Optional, Sequence

import pandas as pd

from orderdesk.models import OrderStatus
from orderdesk.schemas import AnalyticsRange, AnalyticsResponse, BestSeller, OrderRecord
from orderdesk.services.remote import utcnow

BEST_SELLER_LIMIT = 5

_ORDER_COLUMNS = ["id", "day", "total"]
_LINE_COLUMNS = ["order_id", "name", "quantity"]


def _period_mask(days: pd.Series, range_: AnalyticsRange, today: date, custom_date: Optional[date]) -> pd.Series:
    if range_ == AnalyticsRange.TODAY:
        return days == today
    if range_ == AnalyticsRange.WEEK:
        return days >= today - timedelta(days=7)
    if range_ == AnalyticsRange.MONTH:
        return days >= today - timedelta(days=30)
    if range_ == AnalyticsRange.CUSTOM:
        if custom_date is None:
            raise ValueError("custom range requires a date")
        return days == custom_date
    return pd.Series(True, index=days.index)


def summarize(
    orders: Sequence[OrderRecord],
    range_: AnalyticsRange = AnalyticsRange.TODAY,
    custom_date: Optional[date] = None,
    now: Optional[datetime] = None,
) -> AnalyticsResponse:
    range_ = AnalyticsRange(range_)
    today = (now or utcnow()).date()

    completed = [
        o for o in orders
        if o.status == OrderStatus.COMPLETED and o.created_at is not None
    ]
    df = pd.DataFrame(
        [{"id": o.id, "day": o.created_at, "total": float(o.total)} for o in completed],
        columns=_ORDER_COLUMNS,
    )
    if not df.empty:
        df["day"] = pd.to_datetime(df["day"], utc=True).dt.date
        df = df[_period_mask(df["day"], range_, today, custom_date)]

    period_count = int(len(df))
    period_revenue = round(float(df["total"].sum()), 2) if period_count else 0.0
    average = round(period_revenue / period_count, 2) if period_count else 0.0

    in_period = set(df["id"].tolist())
    lines = pd.DataFrame(
        [
            {"order_id": o.id, "name": item.dish.name, "quantity": item.quantity}
            for o in completed if o.id in in_period
            for item in o.items
        ],
        columns=_LINE_COLUMNS,
    )
    best_sellers = []
    if not lines.empty:
        counts = (
            lines.groupby("name")["quantity"].sum()
            .sort_values(ascending=False, kind="mergesort")
            .head(BEST_SELLER_LIMIT)
        )
        best_sellers = [BestSeller(name=name, count=int(count)) for name, count in counts.items()]

    return AnalyticsResponse(
        range=range_,
        custom_date=custom_date if range_ == AnalyticsRange.CUSTOM else None,
        period_revenue=period_revenue,
        period_count=period_count,
        average_order_value=average,
        best_sellers=best_sellers,
        max_sold_count=best_sellers[0].count if best_sellers else 0,
    )
