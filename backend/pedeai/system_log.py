"""
Persistent system log.

Dashboard events (logins, order and product changes, failed remote calls)
are queued in memory and written to the system_logs table in batches. The
admin console reads them back filtered by level, category and restaurant.

Every entry is mirrored to the stdlib logger, so the process log and the
system_logs table tell the same story.
"""

import asyncio
import json
import logging
from collections import deque
from datetime import datetime
from enum import Enum
from typing import Any, Deque, Dict, Iterable, List, Optional

from pydantic import BaseModel

from pedeai.storage import Storage
from pedeai.utils.time_utils import parse_timestamp

logger = logging.getLogger(__name__)

BATCH_SIZE = 10
MAX_QUEUE = 100
SOURCE = "pedeai-backoffice"


class LogLevel(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    SUCCESS = "success"


class LogCategory(str, Enum):
    AUTH = "auth"
    ORDER = "order"
    PAYMENT = "payment"
    SYSTEM = "system"
    DATABASE = "database"
    PRODUCT = "product"
    USER = "user"


_STDLIB_LEVELS = {
    LogLevel.ERROR: logging.ERROR,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.INFO: logging.INFO,
    LogLevel.SUCCESS: logging.INFO,
}


class SystemLogEntry(BaseModel):
    id: int
    level: str
    category: str
    message: str
    details: Optional[Any] = None
    restaurant_id: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime


class LogStats(BaseModel):
    total: int = 0
    errors: int = 0
    warnings: int = 0
    info: int = 0
    success: int = 0


def parse_log(raw: Dict[str, Any]) -> SystemLogEntry:
    details = raw.get("details")
    if isinstance(details, str):
        try:
            details = json.loads(details)
        except ValueError:
            pass
    return SystemLogEntry(
        id=raw["id"],
        level=str(raw.get("level") or LogLevel.INFO.value),
        category=str(raw.get("category") or LogCategory.SYSTEM.value),
        message=str(raw.get("message") or ""),
        details=details,
        restaurant_id=raw.get("restaurant_id"),
        user_agent=raw.get("user_agent"),
        created_at=parse_timestamp(raw.get("created_at")),
    )


def log_stats(entries: Iterable[SystemLogEntry]) -> LogStats:
    stats = LogStats()
    for entry in entries:
        stats.total += 1
        if entry.level == LogLevel.ERROR.value:
            stats.errors += 1
        elif entry.level == LogLevel.WARNING.value:
            stats.warnings += 1
        elif entry.level == LogLevel.SUCCESS.value:
            stats.success += 1
        else:
            stats.info += 1
    return stats


class SystemLogger:
    """
    Queue of pending entries plus a batched writer.

    The queue holds at most max_queue entries; when full the oldest entry is
    dropped. A batch that fails to write goes back to the front of the queue
    and the flush stops, to be retried by the next one.
    """

    def __init__(self, storage: Storage, batch_size: int = BATCH_SIZE, max_queue: int = MAX_QUEUE):
        self.storage = storage
        self.batch_size = batch_size
        self.max_queue = max_queue
        self.dropped = 0
        self._queue: Deque[Dict[str, Any]] = deque(maxlen=max_queue)
        self._lock = asyncio.Lock()

    @property
    def pending(self) -> int:
        return len(self._queue)

    def record(
        self,
        level: LogLevel,
        category: LogCategory,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        restaurant_id: Optional[str] = None,
    ) -> None:
        level = LogLevel(level)
        category = LogCategory(category)
        if len(self._queue) == self.max_queue:
            self.dropped += 1
        self._queue.append({
            "level": level.value,
            "category": category.value,
            "message": message,
            "details": json.dumps(details, default=str) if details is not None else None,
            "restaurant_id": restaurant_id,
            "user_agent": SOURCE,
            "ip_address": None,
        })
        logger.log(_STDLIB_LEVELS[level], "[%s] %s", category.value.upper(), message)

    def error(self, category: LogCategory, message: str, details=None, restaurant_id=None) -> None:
        self.record(LogLevel.ERROR, category, message, details, restaurant_id)

    def warning(self, category: LogCategory, message: str, details=None, restaurant_id=None) -> None:
        self.record(LogLevel.WARNING, category, message, details, restaurant_id)

    def info(self, category: LogCategory, message: str, details=None, restaurant_id=None) -> None:
        self.record(LogLevel.INFO, category, message, details, restaurant_id)

    def success(self, category: LogCategory, message: str, details=None, restaurant_id=None) -> None:
        self.record(LogLevel.SUCCESS, category, message, details, restaurant_id)

    async def flush(self) -> int:
        """Write queued entries in batches. Returns how many were written."""
        written = 0
        # Concurrent flushes queue up; each drains what is left
        async with self._lock:
            while self._queue:
                count = min(self.batch_size, len(self._queue))
                batch = [self._queue.popleft() for _ in range(count)]
                try:
                    await asyncio.to_thread(self.storage.insert_logs, batch)
                except Exception as e:
                    logger.warning("Could not write %d system log entries: %s", len(batch), e)
                    # Entries recorded meanwhile stay behind the failed batch
                    requeued = batch + list(self._queue)
                    self.dropped += max(0, len(requeued) - self.max_queue)
                    self._queue = deque(requeued, maxlen=self.max_queue)
                    break
                written += len(batch)
        return written

    async def query(
        self,
        level: Optional[str] = None,
        category: Optional[str] = None,
        restaurant_id: Optional[str] = None,
        limit: int = 500,
    ) -> List[SystemLogEntry]:
        records = await asyncio.to_thread(self.storage.list_logs, level, category, restaurant_id, limit)
        return [parse_log(r) for r in records]
