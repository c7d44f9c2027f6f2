"""
Application state.

One explicitly constructed AppState owns everything the dashboard shows:
the session and settings, the derived tables, the order/product/customer
mirrors and the undo buffer. Commands write to the remote store first, then
patch the local mirror and re-run the reconciler; the next poll has the
final word.
"""

import asyncio
import logging
import os
from typing import Any, Callable, Dict, List, Optional, Set

from pydantic import BaseModel, Field

from pedeai.catalog import (
    Customer,
    Product,
    ProductInput,
    ProductUpdate,
    parse_produto,
    parse_usuario,
    product_to_record,
)
from pedeai.db.dependencies import hash_password
from pedeai.errors import InvalidCredentials, NotAuthenticated, NotFound, RemoteCallFailed, ValidationFailed
from pedeai.pedidos import (
    LineItem,
    Order,
    OrderStatus,
    format_pedido_record,
    normalize_status,
    parse_pedido,
    parse_pedidos,
    remote_status,
)
from pedeai.printing import PrintPayload, Printer, PrintResult, bill_payload, order_payload
from pedeai.session import SETTINGS_HOLD_SECONDS, SessionStore, Settings
from pedeai.storage import LocalStore, Storage
from pedeai.sync import POLL_INTERVAL_SECONDS, PollingSynchronizer
from pedeai.system_log import LogCategory, LogLevel, SystemLogEntry, SystemLogger
from pedeai.tables import (
    Table,
    TableAlert,
    find_table,
    generate_tables,
    reconcile_tables,
    resize_tables,
)
from pedeai.undo import UNDO_TICKS, UndoAction, UndoBuffer, UndoKind

logger = logging.getLogger(__name__)

UNDO_TICK_SECONDS = float(os.getenv("PEDEAI_UNDO_TICK_SECONDS", "1"))

_ALERT_STATUS = {
    TableAlert.WAITER: OrderStatus.WAITER_PENDING.value,
    TableAlert.BILL: OrderStatus.PAYMENT_PENDING.value,
}


class OrderLine(BaseModel):
    product_id: int
    quantity: int = Field(1, ge=1, le=99)


class AppState:
    def __init__(
        self,
        storage: Storage,
        local_store: Optional[LocalStore] = None,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        hold_seconds: float = SETTINGS_HOLD_SECONDS,
        undo_ticks: int = UNDO_TICKS,
        undo_tick_seconds: float = UNDO_TICK_SECONDS,
        printer: Optional[Printer] = None,
    ):
        self.storage = storage
        self.session = SessionStore(storage, local_store or LocalStore(), hold_seconds)
        self.session.on_settings_changed = self._on_settings_changed

        self.orders: List[Order] = []
        self.products: List[Product] = []
        self.customers: List[Customer] = []
        self.tables: List[Table] = generate_tables(self.session.settings.total_tables)

        self.undo = UndoBuffer(undo_ticks)
        self.undo_tick_seconds = undo_tick_seconds
        self.printer = printer or Printer()
        self.audit = SystemLogger(storage)
        self.poller = PollingSynchronizer(self, poll_interval)

        self._undo_task: Optional[asyncio.Task] = None
        self._background: Set[asyncio.Task] = set()
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def settings(self) -> Settings:
        return self.session.settings

    # ---------- lifecycle ----------

    async def restore(self) -> bool:
        """Resume a persisted session at startup."""
        restored = await self.session.restore()
        if restored:
            await self._start_sync()
        return restored

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        try:
            restaurant = await self.session.login(email, password)
        except InvalidCredentials:
            self._audit(LogLevel.WARNING, LogCategory.AUTH, "Failed restaurant login", {"email": email})
            raise
        self._audit(LogLevel.SUCCESS, LogCategory.AUTH, "Restaurant logged in", {"email": restaurant.get("email")})
        await self._start_sync()
        return restaurant

    async def admin_login(self, email: str, password: str) -> Dict[str, Any]:
        try:
            admin = await self.session.admin_login(email, password)
        except InvalidCredentials:
            self._audit(LogLevel.WARNING, LogCategory.AUTH, "Failed admin login", {"email": email})
            raise
        self._audit(LogLevel.SUCCESS, LogCategory.AUTH, "Admin logged in", {"email": admin["email"]})
        return admin

    async def logout(self) -> None:
        self._audit(LogLevel.INFO, LogCategory.AUTH, "Logged out")
        await self._stop_sync()
        self.clear_undo()
        self.session.logout()
        self.orders = []
        self.products = []
        self.customers = []
        self.tables = generate_tables(self.session.settings.total_tables)
        logger.info("Logged out")

    async def shutdown(self) -> None:
        await self._stop_sync()
        self._cancel_undo_countdown()
        for task in list(self._background):
            task.cancel()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
        self._background.clear()
        # Whatever a cancelled writer left queued
        await self.audit.flush()

    async def _start_sync(self) -> None:
        self._loop = asyncio.get_running_loop()
        if self._unsubscribe is None:
            self._unsubscribe = self.storage.subscribe(self._on_storage_change)
        # First load happens before the session is handed back
        await self.poller.tick()
        self.poller.start()

    async def _stop_sync(self) -> None:
        await self.poller.stop()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    # ---------- sinks ----------

    def reconcile(self) -> None:
        self.tables = reconcile_tables(self.tables, self.orders)

    def apply_orders(self, records: List[Dict[str, Any]]) -> None:
        self.orders = parse_pedidos(records)
        self.reconcile()

    def apply_products(self, records: List[Dict[str, Any]]) -> None:
        self.products = [parse_produto(r) for r in records]

    def apply_users(self, records: List[Dict[str, Any]]) -> None:
        self.customers = [parse_usuario(r) for r in records]

    def apply_order_event(self, event: str, record: Dict[str, Any]) -> None:
        """Fold one change-feed event into the order mirror."""
        if record.get("restaurante_id") != self.session.restaurant_id:
            return
        order = parse_pedido(record)
        if event == "DELETE":
            self.orders = [o for o in self.orders if o.id != order.id]
        else:
            self._upsert_order(order)
        self.reconcile()

    def _on_storage_change(self, event: str, record: Dict[str, Any]) -> None:
        # Called from whichever thread did the write
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self.apply_order_event, event, record)

    def _on_settings_changed(self, old: Settings, new: Settings) -> None:
        if new.total_tables != len(self.tables):
            self.tables = resize_tables(self.tables, new.total_tables)
            self.reconcile()

    def _upsert_order(self, order: Order) -> None:
        for i, existing in enumerate(self.orders):
            if existing.id == order.id:
                self.orders[i] = order
                return
        self.orders.insert(0, order)

    # ---------- helpers ----------

    async def _remote(self, operation: str, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, *args)
        except Exception as e:
            logger.error("Could not %s for restaurant %s: %s", operation, self.session.restaurant_id, e)
            self._audit(LogLevel.ERROR, LogCategory.DATABASE, f"Could not {operation}", {"error": str(e)})
            raise RemoteCallFailed(operation, e)

    def _audit(
        self,
        level: LogLevel,
        category: LogCategory,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.audit.record(level, category, message, details, self.session.restaurant_id)
        self._spawn(self.audit.flush())

    def find_order(self, order_id: int) -> Order:
        for order in self.orders:
            if order.id == order_id:
                return order
        raise NotFound(f"Order {order_id} not found")

    def find_table(self, table_id: int) -> Table:
        table = find_table(self.tables, table_id)
        if table is None:
            raise NotFound(f"Table {table_id} not found")
        return table

    def find_product(self, product_id: int) -> Product:
        for product in self.products:
            if product.id == product_id:
                return product
        raise NotFound(f"Product {product_id} not found")

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background_done)
        return task

    def _background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Background task failed: %s", task.exception())

    async def _write_status(self, order_id: int, status: str) -> None:
        found = await self._remote("update order", self.storage.update_order_status, order_id, remote_status(status))
        if not found:
            raise NotFound(f"Order {order_id} not found")

    def _patch_status(self, order_id: int, status: str) -> None:
        for order in self.orders:
            if order.id == order_id:
                order.status = status

    # ---------- orders ----------

    async def add_order(self, table_id: int, lines: List[OrderLine], note: Optional[str] = None) -> Order:
        """Place an order for a table from the dashboard."""
        restaurant_id = self.session.require_restaurant()
        self.find_table(table_id)
        if not lines:
            raise ValidationFailed({"items": "at least one item is required"})

        items = []
        for line in lines:
            product = self.find_product(line.product_id)
            if not product.active:
                raise ValidationFailed({"items": f"{product.name} is not available"})
            items.append(LineItem(name=product.name, price=product.price, quantity=line.quantity))

        record = format_pedido_record(table_id, items, note=note)
        stored = await self._remote("create order", self.storage.insert_order, restaurant_id, record)
        order = parse_pedido(stored)
        self._upsert_order(order)
        self.reconcile()
        logger.info("Order %s placed for table %s", order.id, table_id)
        self._audit(
            LogLevel.SUCCESS,
            LogCategory.ORDER,
            f"Order {order.id} placed",
            {"order_id": order.id, "table": table_id, "total": order.total},
        )

        # The order already exists remotely; a stock miss must not hide it
        for line in lines:
            try:
                updated = await self._remote(
                    "update stock", self.storage.adjust_stock, line.product_id, -line.quantity
                )
            except RemoteCallFailed:
                logger.warning("Stock for product %s not updated after order %s", line.product_id, order.id)
                continue
            if updated is not None:
                self._replace_product(parse_produto(updated))

        if self.settings.auto_print:
            self._spawn(self._print(order_payload(order)))
        return order

    async def update_order_status(self, order_id: int, status: str) -> Order:
        self.session.require_restaurant()
        self.find_order(order_id)
        canonical = normalize_status(status)
        await self._write_status(order_id, canonical)
        self._patch_status(order_id, canonical)
        self.reconcile()
        self._audit(LogLevel.INFO, LogCategory.ORDER, f"Order {order_id} set to {canonical}", {"order_id": order_id})
        return self.find_order(order_id)

    async def delete_order(self, order_id: int) -> None:
        self.session.require_restaurant()
        self.find_order(order_id)
        found = await self._remote("delete order", self.storage.delete_order, order_id)
        if not found:
            logger.info("Order %s was already gone remotely", order_id)
        self.orders = [o for o in self.orders if o.id != order_id]
        self.reconcile()
        self._audit(LogLevel.INFO, LogCategory.ORDER, f"Order {order_id} deleted", {"order_id": order_id})

    async def deliver_order(self, order_id: int) -> Order:
        """Mark an order delivered; undoable."""
        self.session.require_restaurant()
        order = self.find_order(order_id)
        snapshot = {"order": order.model_dump(mode="json")}
        await self._write_status(order_id, OrderStatus.DELIVERED.value)
        self._patch_status(order_id, OrderStatus.DELIVERED.value)
        self.reconcile()
        self._arm_undo(UndoKind.DELIVER_ORDER, snapshot)
        self._audit(LogLevel.INFO, LogCategory.ORDER, f"Order {order_id} delivered", {"order_id": order_id})
        return self.find_order(order_id)

    # ---------- tables ----------

    async def close_table(self, table_id: int) -> Table:
        """Close every active order of a table, freeing it; undoable."""
        self.session.require_restaurant()
        table = self.find_table(table_id)
        to_close = [o for o in self.orders if o.table == table_id and o.is_active]
        snapshot = {
            "table": table.model_dump(mode="json"),
            "statuses": {str(o.id): o.status for o in to_close},
        }
        for order in to_close:
            await self._write_status(order.id, OrderStatus.CLOSED.value)
            self._patch_status(order.id, OrderStatus.CLOSED.value)
        self.reconcile()
        self._arm_undo(UndoKind.CLOSE_TABLE, snapshot)
        logger.info("Table %s closed (%d orders)", table_id, len(to_close))
        self._audit(
            LogLevel.SUCCESS,
            LogCategory.PAYMENT,
            f"Table {table_id} closed",
            {"table": table_id, "orders": len(to_close), "total": round(sum(o.total for o in to_close), 2)},
        )
        return self.find_table(table_id)

    async def resolve_alert(self, table_id: int) -> Table:
        """Answer a waiter call or bill request; undoable."""
        self.session.require_restaurant()
        table = self.find_table(table_id)
        if table.alert is None:
            return table

        alert_status = _ALERT_STATUS[table.alert]
        alerting = [o for o in self.orders if o.table == table_id and o.status == alert_status]
        snapshot = {
            "table_id": table_id,
            "previous_alert": table.alert.value,
            "statuses": {str(o.id): o.status for o in alerting},
        }
        for order in alerting:
            await self._write_status(order.id, OrderStatus.DELIVERED.value)
            self._patch_status(order.id, OrderStatus.DELIVERED.value)
        self.reconcile()
        self._arm_undo(UndoKind.RESOLVE_ALERT, snapshot)
        self._audit(
            LogLevel.INFO, LogCategory.ORDER, f"Table {table_id} {table.alert.value} answered", {"table": table_id}
        )
        return self.find_table(table_id)

    def bill_for_table(self, table_id: int) -> PrintPayload:
        return bill_payload(self.find_table(table_id), self.settings.service_fee)

    async def print_bill(self, table_id: int) -> PrintResult:
        return await self._print(self.bill_for_table(table_id))

    async def _print(self, payload: PrintPayload) -> PrintResult:
        settings = self.settings
        result = await self.printer.print_payload(payload, settings.restaurant_name, settings.print_channel)
        if not result.success:
            self._audit(LogLevel.WARNING, LogCategory.SYSTEM, "Print failed", {"channel": result.channel, "error": result.error})
        return result

    # ---------- undo ----------

    def _arm_undo(self, kind: UndoKind, snapshot: Dict[str, Any]) -> None:
        discarded = self.undo.arm(UndoAction(kind=kind, snapshot=snapshot))
        if discarded is not None:
            logger.debug("Undo for %s discarded by %s", discarded.kind.value, kind.value)
        self._cancel_undo_countdown()
        self._undo_task = asyncio.create_task(self._run_undo_countdown())

    async def _run_undo_countdown(self) -> None:
        while self.undo.armed:
            await asyncio.sleep(self.undo_tick_seconds)
            if self.undo.tick():
                logger.debug("Undo window expired")

    def _cancel_undo_countdown(self) -> None:
        task, self._undo_task = self._undo_task, None
        if task is not None and not task.done():
            task.cancel()

    def clear_undo(self) -> None:
        self.undo.dismiss()
        self._cancel_undo_countdown()

    async def perform_undo(self) -> Optional[UndoAction]:
        """Replay the armed snapshot. No-op once the window has expired."""
        action = self.undo.take()
        self._cancel_undo_countdown()
        if action is None:
            return None
        self.session.require_restaurant()

        snapshot = action.snapshot
        if action.kind == UndoKind.DELIVER_ORDER:
            previous = Order.model_validate(snapshot["order"])
            await self._write_status(previous.id, previous.status)
            if any(o.id == previous.id for o in self.orders):
                self._patch_status(previous.id, previous.status)
            else:
                self._upsert_order(previous)
            self.reconcile()

        elif action.kind == UndoKind.CLOSE_TABLE:
            await self._restore_statuses(snapshot["statuses"])
            self.reconcile()
            previous_table = Table.model_validate(snapshot["table"])
            self.tables = [previous_table if t.id == previous_table.id else t for t in self.tables]

        elif action.kind == UndoKind.RESOLVE_ALERT:
            await self._restore_statuses(snapshot["statuses"])
            self.reconcile()
            table_id = snapshot["table_id"]
            previous_alert = TableAlert(snapshot["previous_alert"])
            self.tables = [
                t.model_copy(update={"alert": previous_alert}) if t.id == table_id else t
                for t in self.tables
            ]

        logger.info("Undid %s", action.kind.value)
        self._audit(LogLevel.INFO, LogCategory.SYSTEM, f"Undid {action.kind.value}")
        return action

    async def _restore_statuses(self, statuses: Dict[str, str]) -> None:
        for order_id, status in statuses.items():
            await self._write_status(int(order_id), status)
            self._patch_status(int(order_id), status)

    # ---------- products ----------

    def _replace_product(self, product: Product) -> None:
        self.products = [product if p.id == product.id else p for p in self.products]

    async def add_product(self, product: ProductInput) -> Product:
        restaurant_id = self.session.require_restaurant()
        stored = await self._remote(
            "create product", self.storage.insert_product, restaurant_id, product_to_record(product)
        )
        created = parse_produto(stored)
        self.products.insert(0, created)
        self._audit(LogLevel.SUCCESS, LogCategory.PRODUCT, f"Product {created.name} added", {"product_id": created.id})
        return created

    async def update_product(self, product_id: int, changes: ProductUpdate) -> Product:
        restaurant_id = self.session.require_restaurant()
        self.find_product(product_id)
        stored = await self._remote(
            "update product",
            self.storage.update_product,
            restaurant_id,
            product_id,
            product_to_record(changes, partial=True),
        )
        if stored is None:
            raise NotFound(f"Product {product_id} not found")
        updated = parse_produto(stored)
        self._replace_product(updated)
        self._audit(
            LogLevel.INFO,
            LogCategory.PRODUCT,
            f"Product {updated.name} updated",
            {"product_id": product_id, "fields": sorted(changes.model_dump(exclude_unset=True))},
        )
        return updated

    async def delete_product(self, product_id: int) -> None:
        restaurant_id = self.session.require_restaurant()
        product = self.find_product(product_id)
        await self._remote("delete product", self.storage.delete_product, restaurant_id, product_id)
        self.products = [p for p in self.products if p.id != product_id]
        self._audit(LogLevel.WARNING, LogCategory.PRODUCT, f"Product {product.name} deleted", {"product_id": product_id})

    # ---------- restaurants ----------

    async def create_restaurant(self, name: str, email: str, password: str, tables: int = 12) -> Dict[str, Any]:
        """Register a restaurant account (admin console and dev signup)."""
        existing = await self._remote("check email", self.storage.find_restaurant_by_email, email)
        if existing is not None:
            raise ValidationFailed({"email": "already registered"})
        record = {
            "nome": name,
            "email": email.strip(),
            "senha": hash_password(password),
            "quantidade_mesas": str(tables),
            "configuracoes": {},
        }
        created = await self._remote("create restaurant", self.storage.create_restaurant, record)
        logger.info("Restaurant %s registered as %s", email, created["id"])
        self._audit(
            LogLevel.SUCCESS, LogCategory.USER, f"Restaurant {name} registered", {"restaurant_id": created["id"]}
        )
        return {k: v for k, v in created.items() if k != "senha"}

    async def list_restaurants(self) -> List[Dict[str, Any]]:
        if not self.session.is_admin:
            raise NotAuthenticated("Admin login required")
        records = await self._remote("list restaurants", self.storage.list_restaurants)
        return [{k: v for k, v in r.items() if k != "senha"} for r in records]

    # ---------- settings and system log ----------

    async def update_settings(self, partial: Dict[str, Any]) -> Settings:
        settings = await self.session.commit_settings(partial)
        self._audit(LogLevel.INFO, LogCategory.SYSTEM, "Settings changed", {"fields": sorted(partial)})
        return settings

    async def list_logs(
        self,
        level: Optional[str] = None,
        category: Optional[str] = None,
        restaurant_id: Optional[str] = None,
        limit: int = 500,
    ) -> List[SystemLogEntry]:
        """System log for the admin console, newest first."""
        if not self.session.is_admin:
            raise NotAuthenticated("Admin login required")
        await self.audit.flush()
        try:
            return await self.audit.query(level, category, restaurant_id, limit)
        except Exception as e:
            logger.error("Could not load system log: %s", e)
            raise RemoteCallFailed("load system log", e)
