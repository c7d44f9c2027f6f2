"""
Polling synchronizer.

While a restaurant is logged in, re-fetches orders, products, customers and
the restaurant settings every few seconds and feeds them into the
application state. There is no ordering guarantee: whatever lands last in
local state wins. A failed fetch is logged and retried on the next tick.
"""

import asyncio
import logging
import os
from typing import TYPE_CHECKING, Any, Callable, Optional

if TYPE_CHECKING:
    from pedeai.state import AppState

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = float(os.getenv("PEDEAI_POLL_INTERVAL", "2"))


class PollingSynchronizer:
    def __init__(self, state: "AppState", interval: float = POLL_INTERVAL_SECONDS):
        self.state = state
        self.interval = interval
        self.failures = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        logger.info("Polling every %ss", self.interval)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        # The initial load is the caller's tick; the loop only refreshes
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.tick()
            except Exception:
                logger.exception("Polling tick failed")

    async def tick(self) -> None:
        """One polling round. Each fetch succeeds or fails on its own."""
        state = self.state
        restaurant_id = state.session.restaurant_id
        if restaurant_id is None:
            return

        storage = state.storage
        await self._fetch("orders", storage.list_orders, restaurant_id, state.apply_orders)
        await self._fetch("products", storage.list_products, restaurant_id, state.apply_products)
        await self._fetch("users", storage.list_users, restaurant_id, state.apply_users)
        # A save in flight owns the settings until its hold is released
        if not state.session.saving:
            await self._fetch("settings", storage.get_restaurant, restaurant_id, self._apply_settings)

    async def _fetch(self, name: str, fetch: Callable[[str], Any], restaurant_id: str, apply: Callable[[Any], Any]) -> bool:
        try:
            result = await asyncio.to_thread(fetch, restaurant_id)
        except Exception as e:
            self.failures += 1
            logger.warning("Polling %s for restaurant %s failed: %s", name, restaurant_id, e)
            return False
        if self.state.session.restaurant_id != restaurant_id:
            # Logged out (or switched restaurant) while the fetch was in flight
            return False
        apply(result)
        return True

    def _apply_settings(self, record: Optional[dict]) -> None:
        if record is None:
            logger.warning("Restaurant record %s disappeared", self.state.session.restaurant_id)
            return
        self.state.session.apply_remote_settings(record)
