"""Time utilities with America/Sao_Paulo local time."""

from datetime import datetime
from zoneinfo import ZoneInfo
from typing import Optional

try:
    LOCAL_TZ = ZoneInfo("America/Sao_Paulo")
except Exception:
    # Fallback to system local timezone when tzdata is unavailable (Windows)
    LOCAL_TZ = datetime.now().astimezone().tzinfo


def now_local() -> datetime:
    """Return timezone-aware datetime in America/Sao_Paulo."""
    return datetime.now(LOCAL_TZ)


def iso_local() -> str:
    """Return ISO timestamp with the restaurant's UTC offset."""
    return now_local().isoformat()


def to_local(dt: Optional[datetime]) -> Optional[datetime]:
    """Convert a datetime to local tz (assumes local time if naive)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=LOCAL_TZ)
    return dt.astimezone(LOCAL_TZ)


def parse_timestamp(value) -> datetime:
    """Parse a remote created_at value; unparsable values become now."""
    if isinstance(value, datetime):
        return to_local(value)
    if isinstance(value, str) and value:
        try:
            return to_local(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError:
            pass
    return now_local()
