"""Tests for ticket rendering and delivery to the printer bridge."""

import base64

import httpx
import pytest

from conftest import add_pedido
from pedeai.pedidos import LineItem, Order
from pedeai.printing import Printer, bill_payload, intent_link, order_payload, render_ticket
from pedeai.tables import Table, TableStatus


def sample_table():
    return Table(
        id=4,
        status=TableStatus.OCCUPIED,
        consumption=[LineItem(name="Suco", price=8.0, quantity=2), LineItem(name="Pão de Queijo", price=14.0, quantity=1)],
    )


def test_bill_payload_applies_service_fee():
    payload = bill_payload(sample_table(), 10)

    assert payload.is_bill
    assert payload.subtotal == pytest.approx(30.0)
    assert payload.service_fee == pytest.approx(3.0)
    assert payload.total_with_fee == pytest.approx(33.0)


def test_bill_without_service_fee():
    payload = bill_payload(sample_table(), 0)

    assert payload.service_fee == 0
    assert payload.total_with_fee == pytest.approx(30.0)
    assert "Servico" not in render_ticket(payload, "Bar")


def test_render_bill_ticket():
    ticket = render_ticket(bill_payload(sample_table(), 10), "Bar do Zé")

    assert "BAR DO ZE" in ticket
    assert "CONTA MESA 4" in ticket
    assert "2x Suco" in ticket
    assert "1x Pao de Queijo" in ticket
    assert "Servico (10%): R$ 3,00" in ticket
    assert "TOTAL c/taxa: R$ 33,00" in ticket


def test_render_order_ticket_with_note():
    order = Order(id=42, table=3, total=8.0, items=[LineItem(name="Suco", price=8.0)], note="sem açúcar")
    ticket = render_ticket(order_payload(order), "Bar")

    assert "MESA 3" in ticket
    assert "Pedido #42" in ticket
    assert "OBS: sem acucar" in ticket
    assert ticket.startswith("\x1b@")


def test_intent_link_encodes_ticket():
    link = intent_link("MESA 1")

    assert link.startswith("rawbt:base64,")
    assert base64.b64decode(link.split(",", 1)[1]).decode("utf-8") == "MESA 1"


@pytest.mark.asyncio
async def test_network_print_posts_ticket(printer, printed):
    result = await printer.print_payload(bill_payload(sample_table(), 10), "Bar", "network")

    assert result.success
    assert len(printed) == 1
    assert printed[0].url == "http://printer.test/print"
    assert b"CONTA MESA 4" in printed[0].content


@pytest.mark.asyncio
async def test_intent_print_returns_link_without_network(printer, printed):
    result = await printer.print_payload(bill_payload(sample_table(), 10), "Bar", "intent")

    assert result.success
    assert result.link.startswith("rawbt:base64,")
    assert printed == []


@pytest.mark.asyncio
async def test_unreachable_bridge_reports_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    printer = Printer(url="http://printer.test/print", transport=httpx.MockTransport(handler))
    result = await printer.print_payload(bill_payload(sample_table(), 10), "Bar")

    assert not result.success
    assert "connection refused" in result.error


@pytest.mark.asyncio
async def test_bridge_error_status_reports_failure():
    printer = Printer(url="http://printer.test/print", transport=httpx.MockTransport(lambda r: httpx.Response(503)))
    result = await printer.print_payload(bill_payload(sample_table(), 10), "Bar")

    assert not result.success
    assert result.error == "HTTP 503"


@pytest.mark.asyncio
async def test_print_bill_uses_settings(logged_in, storage, printed):
    add_pedido(storage, logged_in.session.restaurant_id, "Mesa 2", "Suco, Suco", "2", "R$ 16,00")
    await logged_in.poller.tick()
    await logged_in.session.commit_settings({"service_fee": 0})

    result = await logged_in.print_bill(2)

    assert result.success
    assert b"TOTAL: R$ 16,00" in printed[0].content
