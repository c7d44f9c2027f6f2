"""
Dashboard analytics over the local order, table and product mirrors.

All periods are evaluated in the restaurant's local time. Functions that
depend on "today" accept an explicit now for reproducible results.
"""

from collections import OrderedDict
from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel

from pedeai.catalog import Product
from pedeai.pedidos import Order, OrderStatus
from pedeai.session import Settings
from pedeai.tables import Table, TableStatus
from pedeai.utils.time_utils import LOCAL_TZ, now_local, to_local

TOP_PRODUCTS = 5


class ProductSales(BaseModel):
    name: str
    quantity: int = 0
    revenue: float = 0.0


class DailyMetrics(BaseModel):
    total_sales: float
    pending_orders: int
    top_products: List[ProductSales]
    total_orders: int


class PeriodMetrics(BaseModel):
    sales: float
    orders: int
    average_ticket: float


class PeriodComparison(BaseModel):
    current: PeriodMetrics
    previous: PeriodMetrics
    growth: Dict[str, float]


class StockAlert(BaseModel):
    product: Product
    level: str  # "critical" or "low"


def _start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=LOCAL_TZ)


def _order_sales(order: Order) -> float:
    return sum(item.price * item.quantity for item in order.items)


def daily_metrics(orders: Iterable[Order], day: Optional[date] = None) -> DailyMetrics:
    """Today's sales, the pending queue and the five best sellers."""
    orders = list(orders)
    day = day or now_local().date()
    todays = [o for o in orders if to_local(o.created_at).date() == day]

    sales: "OrderedDict[str, ProductSales]" = OrderedDict()
    for order in todays:
        for item in order.items:
            entry = sales.setdefault(item.name, ProductSales(name=item.name))
            entry.quantity += item.quantity
            entry.revenue += item.price * item.quantity

    top = sorted(sales.values(), key=lambda s: s.quantity, reverse=True)[:TOP_PRODUCTS]
    return DailyMetrics(
        total_sales=sum(o.total for o in todays),
        pending_orders=sum(1 for o in orders if o.status == OrderStatus.PENDING.value),
        top_products=top,
        total_orders=len(todays),
    )


def period_metrics(orders: Iterable[Order], start: datetime, end: datetime) -> PeriodMetrics:
    """Sales, order count and average ticket for start <= created_at <= end."""
    start, end = to_local(start), to_local(end)
    in_period = [o for o in orders if start <= to_local(o.created_at) <= end]
    sales = sum(_order_sales(o) for o in in_period)
    count = len(in_period)
    return PeriodMetrics(sales=sales, orders=count, average_ticket=sales / count if count else 0.0)


def growth(current: float, previous: float) -> float:
    """Percentage change; 100 when growing from nothing."""
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return (current - previous) / previous * 100.0


def compare_periods(
    orders: Iterable[Order],
    current_start: datetime,
    current_end: datetime,
    previous_start: datetime,
    previous_end: datetime,
) -> PeriodComparison:
    orders = list(orders)
    current = period_metrics(orders, current_start, current_end)
    previous = period_metrics(orders, previous_start, previous_end)
    return PeriodComparison(
        current=current,
        previous=previous,
        growth={
            "sales": growth(current.sales, previous.sales),
            "orders": growth(current.orders, previous.orders),
            "average_ticket": growth(current.average_ticket, previous.average_ticket),
        },
    )


def weekly_comparison(orders: Iterable[Order], now: Optional[datetime] = None) -> PeriodComparison:
    """This week so far (weeks start on Sunday) against the whole previous week."""
    now = to_local(now) if now else now_local()
    days_since_sunday = (now.weekday() + 1) % 7
    week_start = _start_of_day(now.date() - timedelta(days=days_since_sunday))
    previous_start = week_start - timedelta(days=7)
    previous_end = week_start - timedelta(microseconds=1)
    return compare_periods(orders, week_start, now, previous_start, previous_end)


def monthly_comparison(orders: Iterable[Order], now: Optional[datetime] = None) -> PeriodComparison:
    """This month so far against the whole previous month."""
    now = to_local(now) if now else now_local()
    month_start = _start_of_day(now.date().replace(day=1))
    previous_end = month_start - timedelta(microseconds=1)
    previous_start = _start_of_day(previous_end.date().replace(day=1))
    return compare_periods(orders, month_start, now, previous_start, previous_end)


def sales_chart(orders: Iterable[Order], days: int = 7, today: Optional[date] = None) -> List[Dict]:
    """Per-day sales and order counts for the last `days` days, oldest first."""
    orders = list(orders)
    today = today or now_local().date()
    data = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        day_orders = [o for o in orders if to_local(o.created_at).date() == day]
        data.append({
            "date": day.strftime("%d/%m"),
            "sales": sum(_order_sales(o) for o in day_orders),
            "orders": len(day_orders),
        })
    return data


def peak_hours(orders: Iterable[Order]) -> List[Dict]:
    """Order counts for each hour of the day, 00:00 through 23:00."""
    counts = [0] * 24
    for order in orders:
        counts[to_local(order.created_at).hour] += 1
    return [{"hour": f"{hour:02d}:00", "orders": count} for hour, count in enumerate(counts)]


def table_occupancy(tables: Iterable[Table]) -> Dict[str, float]:
    tables = list(tables)
    occupied = sum(1 for t in tables if t.status == TableStatus.OCCUPIED)
    total = len(tables)
    return {
        "occupied": occupied,
        "free": total - occupied,
        "rate": round(occupied / total * 100, 1) if total else 0.0,
    }


def low_stock(products: Iterable[Product], settings: Settings) -> List[StockAlert]:
    """Products at or under their minimum (or the global threshold), critical first."""
    alerts = []
    for product in products:
        if product.stock <= settings.critical_stock_alert:
            alerts.append(StockAlert(product=product, level="critical"))
        elif product.stock <= (product.min_stock or settings.low_stock_alert):
            alerts.append(StockAlert(product=product, level="low"))
    alerts.sort(key=lambda a: (a.level != "critical", a.product.stock))
    return alerts
