"""
Single-slot undo buffer.

Holds at most one reversible action. Arming a new action discards the
previous one; the countdown empties the buffer when it runs out.
"""

import os
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from pedeai.utils.time_utils import now_local


UNDO_TICKS = int(os.getenv("PEDEAI_UNDO_TICKS", "5"))


class UndoKind(str, Enum):
    DELIVER_ORDER = "deliver_order"
    CLOSE_TABLE = "close_table"
    RESOLVE_ALERT = "resolve_alert"


class UndoAction(BaseModel):
    """
    A reversible action and the snapshot needed to reverse it.

    snapshot contents per kind:
      deliver_order: {"order": <Order dump>}
      close_table:   {"table": <Table dump>, "statuses": {order_id: status}}
      resolve_alert: {"table_id": int, "previous_alert": str,
                      "statuses": {order_id: status}}
    """
    kind: UndoKind
    snapshot: Dict[str, Any]
    created_at: datetime = Field(default_factory=now_local)


class UndoBuffer:
    """empty -> armed(action) -> empty"""

    def __init__(self, ticks: int = UNDO_TICKS):
        self.ticks = ticks
        self._action: Optional[UndoAction] = None
        self._remaining = 0

    @property
    def action(self) -> Optional[UndoAction]:
        return self._action

    @property
    def armed(self) -> bool:
        return self._action is not None

    @property
    def remaining(self) -> int:
        return self._remaining if self._action is not None else 0

    def arm(self, action: UndoAction) -> Optional[UndoAction]:
        """Arm action, returning whatever was discarded to make room."""
        discarded = self._action
        self._action = action
        self._remaining = self.ticks
        return discarded

    def tick(self) -> bool:
        """Count down one unit. Returns True when this tick expired the action."""
        if self._action is None:
            return False
        self._remaining -= 1
        if self._remaining <= 0:
            self.dismiss()
            return True
        return False

    def dismiss(self) -> None:
        self._action = None
        self._remaining = 0

    def take(self) -> Optional[UndoAction]:
        """Pop the armed action for replay; None when already empty."""
        action = self._action
        self.dismiss()
        return action
