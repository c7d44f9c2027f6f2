"""
Table reconciler.

Derives each table's occupancy, alert and consumption from the current set
of orders. Tables are never stored remotely; they are recomputed after every
poll and after every local order mutation.
"""

from collections import defaultdict
from enum import Enum
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from pedeai.pedidos import LineItem, Order, OrderStatus


class TableStatus(str, Enum):
    FREE = "free"
    OCCUPIED = "occupied"


class TableAlert(str, Enum):
    WAITER = "waiter"
    BILL = "bill"


class Table(BaseModel):
    id: int
    status: TableStatus = TableStatus.FREE
    alert: Optional[TableAlert] = None
    consumption: List[LineItem] = Field(default_factory=list)
    order_ids: List[int] = Field(default_factory=list)

    @property
    def consumption_total(self) -> float:
        return sum(item.line_total for item in self.consumption)


def generate_tables(count: int) -> List[Table]:
    """Free tables numbered 1..count."""
    return [Table(id=i + 1) for i in range(max(count, 0))]


def resize_tables(tables: List[Table], count: int) -> List[Table]:
    """Grow by appending free tables or shrink by truncation."""
    count = max(count, 0)
    if count <= len(tables):
        return list(tables[:count])
    return list(tables) + [Table(id=i + 1) for i in range(len(tables), count)]


def active_orders(orders: Iterable[Order]) -> List[Order]:
    """Orders that still hold their table (anything not closed)."""
    return [o for o in orders if o.status != OrderStatus.CLOSED.value]


def reconcile_tables(tables: List[Table], orders: Iterable[Order]) -> List[Table]:
    """
    Recompute status, alert and consumption for every table.

    Occupancy is evaluated fresh on each pass: a table is occupied only while
    at least one non-closed order references it. A closed order must never
    keep a table occupied.

    When a table has both a waiter call and a bill request pending, the
    waiter call wins.

    Returns new Table objects; neither the input tables nor the orders are
    mutated.
    """
    by_table: Dict[int, List[Order]] = defaultdict(list)
    for order in active_orders(orders):
        by_table[order.table].append(order)

    result = []
    for table in tables:
        table_orders = by_table.get(table.id, [])
        waiter_called = any(o.status == OrderStatus.WAITER_PENDING.value for o in table_orders)
        bill_requested = any(o.status == OrderStatus.PAYMENT_PENDING.value for o in table_orders)

        if waiter_called:
            alert = TableAlert.WAITER
        elif bill_requested:
            alert = TableAlert.BILL
        else:
            alert = None

        consumption = [item.model_copy() for o in table_orders for item in o.items]
        result.append(Table(
            id=table.id,
            status=TableStatus.OCCUPIED if table_orders else TableStatus.FREE,
            alert=alert,
            consumption=consumption,
            order_ids=[o.id for o in table_orders],
        ))
    return result


def find_table(tables: List[Table], table_id: int) -> Optional[Table]:
    for table in tables:
        if table.id == table_id:
            return table
    return None
