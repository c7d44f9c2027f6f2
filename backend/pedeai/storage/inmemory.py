"""
In-memory storage implementation for PedeAí.

Keeps each remote table as a dict of records keyed by id. Used for
development and tests; state is lost when the process exits.
"""

import copy
import itertools
import threading
import uuid
from typing import Dict, List, Any, Optional

from pedeai.utils.time_utils import iso_local
from .base import Storage


class InMemoryStorage(Storage):
    """In-memory storage using dictionaries."""

    def __init__(self):
        super().__init__()
        self._lock = threading.Lock()
        self._restaurants: Dict[str, Dict[str, Any]] = {}
        self._orders: Dict[int, Dict[str, Any]] = {}
        self._products: Dict[int, Dict[str, Any]] = {}
        self._users: Dict[int, Dict[str, Any]] = {}
        self._admins: Dict[str, Dict[str, Any]] = {}
        self._logs: Dict[int, Dict[str, Any]] = {}
        self._ids = itertools.count(1)

    def _next_id(self) -> int:
        return next(self._ids)

    # ---------- restaurants ----------

    def create_restaurant(self, data: Dict[str, Any]) -> Dict[str, Any]:
        record = copy.deepcopy(data)
        record.setdefault("id", str(uuid.uuid4()))
        record.setdefault("configuracoes", {})
        record.setdefault("created_at", iso_local())
        with self._lock:
            self._restaurants[record["id"]] = record
        return copy.deepcopy(record)

    def get_restaurant(self, restaurant_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._restaurants.get(restaurant_id)
            return copy.deepcopy(record) if record else None

    def find_restaurant_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        wanted = (email or "").strip().lower()
        with self._lock:
            for record in self._restaurants.values():
                if (record.get("email") or "").strip().lower() == wanted:
                    return copy.deepcopy(record)
        return None

    def list_restaurants(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [copy.deepcopy(r) for r in self._restaurants.values()]

    def update_restaurant(self, restaurant_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            record = self._restaurants.get(restaurant_id)
            if record is None:
                raise KeyError(restaurant_id)
            updates = copy.deepcopy(updates)
            if "configuracoes" in updates:
                merged = dict(record.get("configuracoes") or {})
                merged.update(updates["configuracoes"] or {})
                updates["configuracoes"] = merged
            record.update(updates)
            return copy.deepcopy(record)

    # ---------- orders ----------

    def list_orders(self, restaurant_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            orders = [
                copy.deepcopy(o) for o in self._orders.values()
                if o.get("restaurante_id") == restaurant_id
            ]
        # Newest first; ids are monotonic so they break created_at ties
        orders.sort(key=lambda o: (o.get("created_at") or "", o["id"]), reverse=True)
        return orders

    def insert_order(self, restaurant_id: str, record: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            stored = copy.deepcopy(record)
            stored["id"] = self._next_id()
            stored["restaurante_id"] = restaurant_id
            stored.setdefault("created_at", iso_local())
            self._orders[stored["id"]] = stored
        self._notify("INSERT", stored)
        return copy.deepcopy(stored)

    def update_order_status(self, order_id: int, status: str) -> bool:
        with self._lock:
            record = self._orders.get(order_id)
            if record is None:
                return False
            record["status"] = status
            stored = copy.deepcopy(record)
        self._notify("UPDATE", stored)
        return True

    def delete_order(self, order_id: int) -> bool:
        with self._lock:
            record = self._orders.pop(order_id, None)
        if record is None:
            return False
        self._notify("DELETE", record)
        return True

    # ---------- products ----------

    def list_products(self, restaurant_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            products = [
                copy.deepcopy(p) for p in self._products.values()
                if p.get("restaurante_id") == restaurant_id
            ]
        products.sort(key=lambda p: p["id"], reverse=True)
        return products

    def insert_product(self, restaurant_id: str, record: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            stored = copy.deepcopy(record)
            stored["id"] = self._next_id()
            stored["restaurante_id"] = restaurant_id
            stored.setdefault("created_at", iso_local())
            self._products[stored["id"]] = stored
            return copy.deepcopy(stored)

    def update_product(self, restaurant_id: str, product_id: int, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._products.get(product_id)
            if record is None or record.get("restaurante_id") != restaurant_id:
                return None
            record.update(copy.deepcopy(updates))
            return copy.deepcopy(record)

    def delete_product(self, restaurant_id: str, product_id: int) -> bool:
        with self._lock:
            record = self._products.get(product_id)
            if record is None or record.get("restaurante_id") != restaurant_id:
                return False
            del self._products[product_id]
            return True

    def adjust_stock(self, product_id: int, delta: int) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._products.get(product_id)
            if record is None:
                return None
            record["estoque"] = max(0, (record.get("estoque") or 0) + delta)
            return copy.deepcopy(record)

    # ---------- customers ----------

    def list_users(self, restaurant_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [
                copy.deepcopy(u) for u in self._users.values()
                if u.get("id_restaurante") == restaurant_id
            ]

    def insert_user(self, restaurant_id: str, record: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            stored = copy.deepcopy(record)
            stored["id"] = self._next_id()
            stored["id_restaurante"] = restaurant_id
            stored.setdefault("created_at", iso_local())
            self._users[stored["id"]] = stored
            return copy.deepcopy(stored)

    # ---------- admins ----------

    def create_admin(self, email: str, password_hash: str, roles: List[str]) -> Dict[str, Any]:
        key = email.strip().lower()
        with self._lock:
            if key in self._admins:
                raise ValueError(f"admin {email} already exists")
            record = {
                "id": self._next_id(),
                "email": email.strip(),
                "password_hash": password_hash,
                "roles": list(roles),
                "created_at": iso_local(),
            }
            self._admins[key] = record
            return copy.deepcopy(record)

    def find_admin(self, email: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._admins.get((email or "").strip().lower())
            return copy.deepcopy(record) if record else None

    # ---------- system logs ----------

    def insert_logs(self, entries: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        with self._lock:
            stored = []
            for entry in entries:
                record = copy.deepcopy(entry)
                record["id"] = self._next_id()
                record.setdefault("created_at", iso_local())
                self._logs[record["id"]] = record
                stored.append(copy.deepcopy(record))
            return stored

    def list_logs(
        self,
        level: Optional[str] = None,
        category: Optional[str] = None,
        restaurant_id: Optional[str] = None,
        limit: int = 500,
    ) -> List[Dict[str, Any]]:
        with self._lock:
            logs = [
                copy.deepcopy(entry) for entry in self._logs.values()
                if (level is None or entry.get("level") == level)
                and (category is None or entry.get("category") == category)
                and (restaurant_id is None or entry.get("restaurant_id") == restaurant_id)
            ]
        logs.sort(key=lambda e: (e.get("created_at") or "", e["id"]), reverse=True)
        return logs[:limit]

    def clear(self) -> None:
        """Clear all state."""
        with self._lock:
            self._restaurants.clear()
            self._orders.clear()
            self._products.clear()
            self._users.clear()
            self._admins.clear()
            self._logs.clear()
