"""
Ticket printing collaborator.

Renders an order ticket or a table bill as plain text and hands it to the
thermal printer bridge, either over the local network endpoint or as a
device print-intent link. Printing is best-effort: failures are reported in
the result and logged, never raised.
"""

import base64
import logging
import os
import unicodedata
from datetime import datetime
from typing import List, Optional, Union

import httpx
from pydantic import BaseModel, Field

from pedeai.pedidos import Order
from pedeai.tables import Table
from pedeai.utils.time_utils import now_local

logger = logging.getLogger(__name__)

PRINTER_URL = os.getenv("PEDEAI_PRINTER_URL", "http://localhost:40213/print")
PRINT_TIMEOUT_SECONDS = 2.0
LINE_WIDTH = 32

ESC = "\x1b"
GS = "\x1d"
CMD_INIT = ESC + "@"
CMD_CUT = GS + "V" + "\x41" + "\x00"


class PrintItem(BaseModel):
    name: str
    quantity: int
    price: float


class PrintPayload(BaseModel):
    id: Union[int, str]
    table: int
    created_at: datetime = Field(default_factory=now_local)
    items: List[PrintItem]
    total: float
    is_bill: bool = False
    subtotal: Optional[float] = None
    service_fee_percentage: Optional[float] = None
    service_fee: Optional[float] = None
    total_with_fee: Optional[float] = None
    note: Optional[str] = None


class PrintResult(BaseModel):
    success: bool
    channel: str
    link: Optional[str] = None
    error: Optional[str] = None


def order_payload(order: Order) -> PrintPayload:
    return PrintPayload(
        id=order.id,
        table=order.table,
        created_at=order.created_at,
        items=[PrintItem(name=i.name, quantity=i.quantity, price=i.price) for i in order.items],
        total=order.total,
        note=order.note,
    )


def bill_payload(table: Table, service_fee_percentage: float) -> PrintPayload:
    """The closing bill for a table, with the optional service fee."""
    subtotal = round(table.consumption_total, 2)
    fee = round(subtotal * service_fee_percentage / 100.0, 2)
    return PrintPayload(
        id=f"mesa-{table.id}",
        table=table.id,
        items=[PrintItem(name=i.name, quantity=i.quantity, price=i.price) for i in table.consumption],
        total=round(subtotal + fee, 2),
        is_bill=True,
        subtotal=subtotal,
        service_fee_percentage=service_fee_percentage,
        service_fee=fee,
        total_with_fee=round(subtotal + fee, 2),
    )


def _plain(text: str) -> str:
    # Cheap thermal printers only handle ASCII
    nfkd = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in nfkd if not unicodedata.combining(ch))


def _money(value: float) -> str:
    return f"R$ {value:.2f}".replace(".", ",")


def render_ticket(payload: PrintPayload, restaurant_name: str) -> str:
    """Plain-text ticket wrapped in ESC/POS init and cut commands."""
    rule = "-" * LINE_WIDTH
    lines = [
        _plain(restaurant_name).upper(),
        payload.created_at.strftime("%d/%m/%Y %H:%M"),
        rule,
    ]
    if payload.is_bill:
        lines.append(f"CONTA MESA {payload.table}")
    else:
        lines.append(f"MESA {payload.table}")
        lines.append(f"Pedido #{payload.id}")
    lines.extend([rule, "ITENS:"])

    for item in payload.items:
        lines.append(f"{item.quantity}x {_plain(item.name)}")
        line_total = _money(item.price * item.quantity)
        if item.quantity > 1:
            lines.append(f"   {_money(item.price)} cada ....... {line_total}")
        else:
            lines.append(f"   ........................ {line_total}")
    lines.append(rule)

    if payload.is_bill and payload.subtotal is not None:
        lines.append(f"Subtotal: {_money(payload.subtotal)}")
        if payload.service_fee_percentage:
            pct = f"{payload.service_fee_percentage:g}"
            lines.append(f"Servico ({pct}%): {_money(payload.service_fee or 0)}")
            lines.append(f"TOTAL c/taxa: {_money(payload.total_with_fee or 0)}")
            lines.append(f"(Total s/ taxa: {_money(payload.subtotal)})")
        else:
            lines.append(f"TOTAL: {_money(payload.total_with_fee or payload.subtotal)}")
    else:
        lines.append(f"TOTAL: {_money(payload.total)}")

    if payload.note:
        lines.append(f"OBS: {_plain(payload.note)}")
    lines.extend(["", "Obrigado pela preferencia!", "", ""])
    return CMD_INIT + "\n".join(lines) + "\n" + CMD_CUT


def intent_link(ticket: str) -> str:
    """Device print intent understood by the RawBT bridge app."""
    encoded = base64.b64encode(ticket.encode("utf-8")).decode("ascii")
    return f"rawbt:base64,{encoded}"


class Printer:
    """Delivers tickets to the printer bridge."""

    def __init__(
        self,
        url: str = PRINTER_URL,
        timeout: float = PRINT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.transport = transport

    async def print_payload(self, payload: PrintPayload, restaurant_name: str, channel: str = "network") -> PrintResult:
        ticket = render_ticket(payload, restaurant_name)
        if channel == "intent":
            return PrintResult(success=True, channel=channel, link=intent_link(ticket))

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    self.url,
                    content=ticket.encode("utf-8"),
                    headers={"Content-Type": "text/plain"},
                )
        except httpx.HTTPError as e:
            logger.warning("Printer bridge at %s unreachable: %s", self.url, e)
            return PrintResult(success=False, channel=channel, error=str(e))

        if not response.is_success:
            logger.warning("Printer bridge rejected ticket %s: HTTP %s", payload.id, response.status_code)
            return PrintResult(success=False, channel=channel, error=f"HTTP {response.status_code}")
        return PrintResult(success=True, channel=channel)
