"""
Abstract Storage interface for PedeAí.

Defines the contract the dashboard expects from the hosted relational store:
filtered selects, inserts, updates and deletes on the restaurant, order,
product, customer and admin tables, plus a change feed for orders.
Records are plain dicts using the remote column names.
Implementations can be in-memory, database-backed, or other backends.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

# (event, record) where event is "INSERT", "UPDATE" or "DELETE"
ChangeListener = Callable[[str, Dict[str, Any]], None]


class Storage(ABC):
    """Abstract base class for storage implementations."""

    def __init__(self):
        self._listeners: List[ChangeListener] = []

    # ---------- change feed ----------

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """
        Register a listener for order changes.

        Delivery is best-effort and unordered relative to polling; returns a
        callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, event: str, record: Dict[str, Any]) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, dict(record))
            except Exception:
                logger.exception("Order change listener failed for %s", event)

    # ---------- restaurants ----------

    @abstractmethod
    def create_restaurant(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a restaurant record; returns it with its generated id."""
        ...

    @abstractmethod
    def get_restaurant(self, restaurant_id: str) -> Optional[Dict[str, Any]]:
        """Select a restaurant by id. Returns None if not found."""
        ...

    @abstractmethod
    def find_restaurant_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """Select a restaurant by login email (case-insensitive)."""
        ...

    @abstractmethod
    def list_restaurants(self) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def update_restaurant(self, restaurant_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        """
        Update a restaurant by id and return the stored record (the echo).

        No version check: the last writer wins.
        Raises KeyError if the restaurant does not exist.
        """
        ...

    # ---------- orders (Pedidos) ----------

    @abstractmethod
    def list_orders(self, restaurant_id: str) -> List[Dict[str, Any]]:
        """All orders of a restaurant, newest first."""
        ...

    @abstractmethod
    def insert_order(self, restaurant_id: str, record: Dict[str, Any]) -> Dict[str, Any]:
        """Insert an order record; returns it with id and created_at."""
        ...

    @abstractmethod
    def update_order_status(self, order_id: int, status: str) -> bool:
        """Returns True if the order was found and updated."""
        ...

    @abstractmethod
    def delete_order(self, order_id: int) -> bool:
        """Returns True if the order was found and deleted."""
        ...

    # ---------- products (Produtos) ----------

    @abstractmethod
    def list_products(self, restaurant_id: str) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def insert_product(self, restaurant_id: str, record: Dict[str, Any]) -> Dict[str, Any]:
        ...

    @abstractmethod
    def update_product(self, restaurant_id: str, product_id: int, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Returns the updated record, or None if not found."""
        ...

    @abstractmethod
    def delete_product(self, restaurant_id: str, product_id: int) -> bool:
        ...

    @abstractmethod
    def adjust_stock(self, product_id: int, delta: int) -> Optional[Dict[str, Any]]:
        """Add delta to a product's stock, never going below zero."""
        ...

    # ---------- customers (Usuários) ----------

    @abstractmethod
    def list_users(self, restaurant_id: str) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def insert_user(self, restaurant_id: str, record: Dict[str, Any]) -> Dict[str, Any]:
        ...

    # ---------- console administrators ----------

    @abstractmethod
    def create_admin(self, email: str, password_hash: str, roles: List[str]) -> Dict[str, Any]:
        ...

    @abstractmethod
    def find_admin(self, email: str) -> Optional[Dict[str, Any]]:
        ...

    # ---------- system logs ----------

    @abstractmethod
    def insert_logs(self, entries: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Insert a batch of system log entries; all or nothing."""
        ...

    @abstractmethod
    def list_logs(
        self,
        level: Optional[str] = None,
        category: Optional[str] = None,
        restaurant_id: Optional[str] = None,
        limit: int = 500,
    ) -> List[Dict[str, Any]]:
        """System log entries matching every given filter, newest first."""
        ...

    @abstractmethod
    def clear(self) -> None:
        """Clear all state."""
        ...

    def close(self) -> None:
        """Release resources held by the backend."""
