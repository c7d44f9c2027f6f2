"""Tests for deriving table state from orders."""

import pytest

from pedeai.pedidos import LineItem, Order
from pedeai.tables import (
    TableAlert,
    TableStatus,
    find_table,
    generate_tables,
    reconcile_tables,
    resize_tables,
)


def make_order(order_id, table, status="pending", items=None):
    return Order(
        id=order_id,
        table=table,
        status=status,
        items=items if items is not None else [LineItem(name="Suco", price=8.0, quantity=1)],
    )


class TestTableList:

    def test_generate_tables(self):
        tables = generate_tables(4)
        assert [t.id for t in tables] == [1, 2, 3, 4]
        assert all(t.status == TableStatus.FREE and t.alert is None and t.consumption == [] for t in tables)

    def test_resize_grows_and_shrinks(self):
        tables = reconcile_tables(generate_tables(3), [make_order(1, 2)])

        grown = resize_tables(tables, 5)
        assert [t.id for t in grown] == [1, 2, 3, 4, 5]
        assert grown[1].status == TableStatus.OCCUPIED
        assert grown[4].status == TableStatus.FREE

        shrunk = resize_tables(tables, 1)
        assert [t.id for t in shrunk] == [1]

    def test_find_table(self):
        tables = generate_tables(2)
        assert find_table(tables, 2).id == 2
        assert find_table(tables, 9) is None


class TestReconcile:

    def test_table_without_orders_is_free(self):
        [table] = reconcile_tables(generate_tables(1), [])

        assert table.status == TableStatus.FREE
        assert table.alert is None
        assert table.consumption == []

    def test_occupied_while_any_order_is_open(self):
        tables = reconcile_tables(generate_tables(3), [make_order(1, 2), make_order(2, 2, "closed")])

        assert tables[1].status == TableStatus.OCCUPIED
        assert tables[1].order_ids == [1]
        assert tables[0].status == TableStatus.FREE

    def test_closed_orders_never_occupy(self):
        orders = [make_order(1, 1, "closed"), make_order(2, 1, "closed")]
        [table] = reconcile_tables(generate_tables(1), orders)

        assert table.status == TableStatus.FREE
        assert table.consumption == []

    def test_closing_the_only_order_frees_the_table(self):
        order = make_order(1, 4, "pending")
        tables = reconcile_tables(generate_tables(4), [order])
        assert tables[3].status == TableStatus.OCCUPIED
        assert tables[3].consumption_total == pytest.approx(8.0)

        closed = order.model_copy(update={"status": "closed"})
        tables = reconcile_tables(tables, [closed])

        assert tables[3].status == TableStatus.FREE
        assert tables[3].consumption == []

    def test_waiter_call_wins_over_bill_request(self):
        orders = [make_order(1, 1, "payment_pending"), make_order(2, 1, "waiter_pending")]
        [table] = reconcile_tables(generate_tables(1), orders)

        assert table.alert == TableAlert.WAITER

    def test_bill_request_alert(self):
        [table] = reconcile_tables(generate_tables(1), [make_order(1, 1, "payment_pending")])
        assert table.alert == TableAlert.BILL

    def test_closed_alerting_order_raises_no_alert(self):
        # Only active orders can raise an alert
        [table] = reconcile_tables(generate_tables(1), [make_order(1, 1, "closed")])
        assert table.alert is None

    def test_consumption_concatenates_active_orders(self):
        orders = [
            make_order(1, 1, items=[LineItem(name="Suco", price=8.0, quantity=2)]),
            make_order(2, 1, items=[LineItem(name="Bolo", price=9.0, quantity=1)]),
            make_order(3, 1, "closed", items=[LineItem(name="Café", price=5.0, quantity=1)]),
        ]
        [table] = reconcile_tables(generate_tables(1), orders)

        assert [i.name for i in table.consumption] == ["Suco", "Bolo"]
        assert table.consumption_total == pytest.approx(25.0)

    def test_orders_outside_the_table_range_are_ignored(self):
        tables = reconcile_tables(generate_tables(2), [make_order(1, 0), make_order(2, 7)])

        assert [t.id for t in tables] == [1, 2]
        assert all(t.status == TableStatus.FREE for t in tables)

    def test_a_stale_alert_is_cleared(self):
        tables = reconcile_tables(generate_tables(1), [make_order(1, 1, "waiter_pending")])
        tables = reconcile_tables(tables, [make_order(1, 1, "delivered")])

        assert tables[0].alert is None
        assert tables[0].status == TableStatus.OCCUPIED

    def test_inputs_are_not_mutated(self):
        orders = [make_order(1, 1, "waiter_pending")]
        tables = generate_tables(1)
        before_orders = [o.model_copy(deep=True) for o in orders]

        result = reconcile_tables(tables, orders)
        result[0].consumption[0].quantity = 99

        assert orders == before_orders
        assert tables[0].status == TableStatus.FREE
        assert orders[0].items[0].quantity == 1
