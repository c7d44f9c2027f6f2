"""
Parsing of remote "Pedido" records into typed orders.

Pedidos arrive loosely typed: the table is free text ("Mesa 7"), the items
are comma-joined repeated names (one token per unit sold), the quantity is
a string and the subtotal is a Brazilian currency string ("R$ 27,00").
Parsing never fails: malformed numeric fields fall back to safe defaults.
"""

import json
import re
import unicodedata
from collections import OrderedDict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from pedeai.utils.time_utils import now_local, parse_timestamp


class OrderStatus(str, Enum):
    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"
    DELIVERED = "delivered"
    PAYMENT_PENDING = "payment_pending"
    WAITER_PENDING = "waiter_pending"
    CLOSED = "closed"


# Keys are accent-free, lowercase, with "_"/"-" folded into spaces.
_STATUS_SYNONYMS: Dict[str, OrderStatus] = {
    "pending": OrderStatus.PENDING,
    "pendente": OrderStatus.PENDING,
    "novo": OrderStatus.PENDING,
    "new": OrderStatus.PENDING,
    "recebido": OrderStatus.PENDING,
    "preparing": OrderStatus.PREPARING,
    "preparando": OrderStatus.PREPARING,
    "em preparo": OrderStatus.PREPARING,
    "em preparacao": OrderStatus.PREPARING,
    "in progress": OrderStatus.PREPARING,
    "ready": OrderStatus.READY,
    "pronto": OrderStatus.READY,
    "pronta": OrderStatus.READY,
    "delivered": OrderStatus.DELIVERED,
    "entregue": OrderStatus.DELIVERED,
    "servido": OrderStatus.DELIVERED,
    "payment pending": OrderStatus.PAYMENT_PENDING,
    "pagamento pendente": OrderStatus.PAYMENT_PENDING,
    "aguardando pagamento": OrderStatus.PAYMENT_PENDING,
    "conta": OrderStatus.PAYMENT_PENDING,
    "pedindo conta": OrderStatus.PAYMENT_PENDING,
    "conta solicitada": OrderStatus.PAYMENT_PENDING,
    "bill requested": OrderStatus.PAYMENT_PENDING,
    "waiter pending": OrderStatus.WAITER_PENDING,
    "waiter called": OrderStatus.WAITER_PENDING,
    "chamando garcom": OrderStatus.WAITER_PENDING,
    "chamar garcom": OrderStatus.WAITER_PENDING,
    "garcom chamado": OrderStatus.WAITER_PENDING,
    "aguardando garcom": OrderStatus.WAITER_PENDING,
    "closed": OrderStatus.CLOSED,
    "fechado": OrderStatus.CLOSED,
    "fechada": OrderStatus.CLOSED,
    "finalizado": OrderStatus.CLOSED,
    "pago": OrderStatus.CLOSED,
    "paid": OrderStatus.CLOSED,
    "cancelado": OrderStatus.CLOSED,
    "cancelled": OrderStatus.CLOSED,
    "canceled": OrderStatus.CLOSED,
}


# Status strings written back to the remote record, in the ordering channel's vocabulary.
_REMOTE_STATUS: Dict[OrderStatus, str] = {
    OrderStatus.PENDING: "pendente",
    OrderStatus.PREPARING: "preparando",
    OrderStatus.READY: "pronto",
    OrderStatus.DELIVERED: "entregue",
    OrderStatus.PAYMENT_PENDING: "pagamento pendente",
    OrderStatus.WAITER_PENDING: "chamando garcom",
    OrderStatus.CLOSED: "fechado",
}


class LineItem(BaseModel):
    name: str
    price: float = 0.0
    quantity: int = 1

    @property
    def line_total(self) -> float:
        return self.price * self.quantity


class Order(BaseModel):
    id: int
    table: int = 0
    items: List[LineItem] = Field(default_factory=list)
    quantity: int = 1
    total: float = 0.0
    status: str = OrderStatus.PENDING.value
    note: Optional[str] = None
    created_at: datetime = Field(default_factory=now_local)
    restaurant_id: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status != OrderStatus.CLOSED.value


# ---------- Helper utilities ----------

def _strip_accents(s: str) -> str:
    if not s:
        return ""
    nfkd = unicodedata.normalize("NFD", s)
    return "".join(ch for ch in nfkd if not unicodedata.combining(ch))


def _status_key(raw: str) -> str:
    t = _strip_accents(raw).lower()
    t = re.sub(r"[_\-]+", " ", t)
    return re.sub(r"\s+", " ", t).strip()


def parse_table_number(mesa: Any) -> int:
    """First run of digits in the free-text table field, else 0."""
    if isinstance(mesa, int) and not isinstance(mesa, bool):
        return mesa
    if mesa is None:
        return 0
    m = re.search(r"\d+", str(mesa))
    return int(m.group(0)) if m else 0


def parse_quantity(value: Any, default: int = 1) -> int:
    """Integer-parse a leading number ("3", " 3 un", "3.0" -> 3)."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, float):
        return int(value)
    if value is None:
        return default
    m = re.match(r"\s*(-?\d+)", str(value))
    return int(m.group(1)) if m else default


def parse_amount(value: Any, default: float = 0.0) -> float:
    """
    Parse a currency string into a float.

    "R$ 27,00" -> 27.0, "27.5" -> 27.5, "R$ 1.234,50" -> 1234.5.
    A comma is the decimal separator; when present, dots are thousands marks.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if value is None:
        return default
    text = re.sub(r"[^\d,.\-]", "", str(value))
    if "," in text:
        text = text.replace(".", "").replace(",", ".")
    try:
        return float(text)
    except ValueError:
        return default


def format_brl(value: float) -> str:
    """Format a float as a Brazilian currency string ("R$ 1.234,50")."""
    text = f"{value:,.2f}"
    return "R$ " + text.replace(",", "_").replace(".", ",").replace("_", ".")


def normalize_status(raw: Optional[str]) -> str:
    """
    Map a status string to its canonical token.

    Known synonyms (Portuguese/English, with or without accents) become one of
    the OrderStatus values. Anything else passes through lowercased; a missing
    status means the order was just placed.
    """
    if raw is None or not str(raw).strip():
        return OrderStatus.PENDING.value
    if isinstance(raw, OrderStatus):
        return raw.value
    status = _STATUS_SYNONYMS.get(_status_key(str(raw)))
    if status is not None:
        return status.value
    return str(raw).strip().lower()


def parse_status(raw: Optional[str]) -> Optional[OrderStatus]:
    """Return the OrderStatus for raw, or None for passthrough statuses."""
    try:
        return OrderStatus(normalize_status(raw))
    except ValueError:
        return None


def remote_status(status: str) -> str:
    """Remote spelling of a status; passthrough statuses are written as-is."""
    parsed = parse_status(status)
    return _REMOTE_STATUS[parsed] if parsed is not None else str(status)


def _parse_json_items(text: str) -> List[LineItem]:
    try:
        data = json.loads(text)
    except ValueError:
        return []
    if not isinstance(data, list):
        return []
    items = []
    for entry in data:
        if not isinstance(entry, dict):
            continue
        name = str(entry.get("nome") or entry.get("name") or "").strip()
        if not name:
            continue
        items.append(LineItem(
            name=name,
            quantity=parse_quantity(entry.get("quantidade", entry.get("quantity"))),
            price=parse_amount(entry.get("preco", entry.get("price"))),
        ))
    return items


def _group_item_tokens(itens: str) -> "OrderedDict[str, int]":
    counts: "OrderedDict[str, int]" = OrderedDict()
    for token in itens.split(","):
        name = token.strip()
        if not name:
            continue
        counts[name] = counts.get(name, 0) + 1
    return counts


def parse_pedido(raw: Dict[str, Any]) -> Order:
    """Normalize one remote Pedido record into an Order."""
    quantity = parse_quantity(raw.get("quantidade"))
    total = parse_amount(raw.get("Subtotal"))
    unit_price = total / quantity if quantity else 0.0

    itens = raw.get("itens") or ""
    if not isinstance(itens, str):
        itens = json.dumps(itens)

    if itens.lstrip().startswith("["):
        items = _parse_json_items(itens)
    else:
        counts = _group_item_tokens(itens)
        # One item name with a separate multi-unit count: trust the count.
        if len(counts) == 1 and quantity > 1:
            only = next(iter(counts))
            counts[only] = quantity
        items = [
            LineItem(name=name, price=unit_price, quantity=count)
            for name, count in counts.items()
        ]

    note = raw.get("descricao") or raw.get("observacao")

    return Order(
        id=parse_quantity(raw.get("id"), default=0),
        table=parse_table_number(raw.get("mesa")),
        items=items,
        quantity=quantity,
        total=total,
        status=normalize_status(raw.get("status")),
        note=str(note) if note else None,
        created_at=parse_timestamp(raw.get("created_at")),
        restaurant_id=raw.get("restaurante_id"),
    )


def parse_pedidos(records: Iterable[Dict[str, Any]]) -> List[Order]:
    return [parse_pedido(r) for r in records]


def format_pedido_record(
    table_id: int,
    items: List[LineItem],
    status: str = "pendente",
    note: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Build the remote record for a new order placed from the dashboard.

    Uses the same loose encoding the ordering channel writes, so parse_pedido
    reads it back with per-name counts.
    """
    tokens: List[str] = []
    for item in items:
        tokens.extend([item.name] * max(item.quantity, 0))
    total = sum(item.line_total for item in items)
    record = {
        "mesa": f"Mesa {table_id}",
        "itens": ", ".join(tokens),
        "quantidade": str(len(tokens)),
        "Subtotal": format_brl(total),
        "status": status,
    }
    if note:
        record["descricao"] = note
    return record
