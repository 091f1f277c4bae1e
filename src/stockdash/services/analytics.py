"""Dashboard and report aggregations.

Everything here works on already-fetched ``Product`` / ``Sale`` snapshots and
does no I/O, so the same functions back the dashboard, the report export and
the tests. Dates are compared in local time, the same clock sales are stamped
with.
"""
from __future__ import annotations

from collections import Counter, defaultdict
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from stockdash.domain.models import (
    CategoryBreakdown,
    DailySalesSummary,
    DashboardStats,
    HourlySlot,
    Product,
    Sale,
    TopProduct,
    profit_margin,
)

REPORT_WINDOWS: tuple[int, ...] = (7, 30, 90)


def filter_sales_since(sales: Iterable[Sale], days: int, now: Optional[datetime] = None) -> list[Sale]:
    now = now or datetime.now()
    cutoff = now - timedelta(days=int(days))
    return [s for s in sales if s.created_at >= cutoff]


def dashboard_stats(
    products: Iterable[Product],
    sales: Iterable[Sale],
    today: Optional[date] = None,
) -> DashboardStats:
    products = list(products)
    sales = list(sales)
    today = today or date.today()

    total_sales = sum(s.total_amount for s in sales)
    total_profit = sum(s.profit for s in sales)
    todays = [s for s in sales if s.created_at.date() == today]

    return DashboardStats(
        total_products=len(products),
        total_inventory_value=float(sum(p.purchase_price * p.quantity for p in products)),
        total_sales=float(total_sales),
        total_profit=float(total_profit),
        total_count=len(sales),
        today_sales=float(sum(s.total_amount for s in todays)),
        today_profit=float(sum(s.profit for s in todays)),
        today_count=len(todays),
        categories_count=dict(Counter(p.category for p in products)),
        profit_margin=profit_margin(total_profit, total_sales),
    )


def daily_sales(sales: Iterable[Sale]) -> list[DailySalesSummary]:
    buckets: dict[str, list[float]] = defaultdict(lambda: [0.0, 0.0, 0])
    for s in sales:
        acc = buckets[s.created_at.date().isoformat()]
        acc[0] += s.total_amount
        acc[1] += s.profit
        acc[2] += 1

    return [
        DailySalesSummary(date=day, total=float(total), profit=float(profit), count=int(count))
        for day, (total, profit, count) in sorted(buckets.items(), reverse=True)
    ]


def hourly_sales(
    sales: Iterable[Sale],
    days: Optional[int] = None,
    now: Optional[datetime] = None,
) -> list[HourlySlot]:
    if days is not None:
        sales = filter_sales_since(sales, days, now=now)

    totals = [0.0] * 24
    counts = [0] * 24
    for s in sales:
        h = s.sale_time.hour
        totals[h] += s.total_amount
        counts[h] += 1
    return [HourlySlot(hour=h, sales=float(totals[h]), count=counts[h]) for h in range(24)]


def top_selling_products(
    products: Iterable[Product],
    sales: Iterable[Sale],
    limit: int = 5,
) -> list[TopProduct]:
    by_id = {p.id: p for p in products}
    units: Counter[str] = Counter()
    revenue: defaultdict[str, float] = defaultdict(float)
    for s in sales:
        # sales of deleted products have nothing to join against
        if s.product_id not in by_id:
            continue
        units[s.product_id] += s.quantity
        revenue[s.product_id] += s.total_amount

    rows = [
        TopProduct(
            product_id=pid,
            name=by_id[pid].name,
            category=by_id[pid].category,
            units_sold=int(units[pid]),
            revenue=float(revenue[pid]),
        )
        for pid in units
    ]
    rows.sort(key=lambda r: r.revenue, reverse=True)
    return rows[: max(int(limit), 0)]


def category_breakdown(products: Iterable[Product], sales: Iterable[Sale]) -> list[CategoryBreakdown]:
    products = list(products)
    category_of = {p.id: p.category for p in products}
    product_counts = Counter(p.category for p in products)

    units: Counter[str] = Counter()
    revenue: defaultdict[str, float] = defaultdict(float)
    profit: defaultdict[str, float] = defaultdict(float)
    for s in sales:
        cat = category_of.get(s.product_id)
        if cat is None:
            continue
        units[cat] += s.quantity
        revenue[cat] += s.total_amount
        profit[cat] += s.profit

    return [
        CategoryBreakdown(
            category=cat,
            products=int(product_counts[cat]),
            units_sold=int(units[cat]),
            revenue=float(revenue[cat]),
            profit=float(profit[cat]),
        )
        for cat in sorted(set(product_counts) | set(units))
    ]
