import logging
import re
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .config import get_settings

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def normalize_whitespace(value: Optional[str]) -> str:
    """
    Trims a string and collapses inner runs of whitespace to one space.

    Examples:
    - "  Juan   Dela  Cruz " -> "Juan Dela Cruz"
    - None -> ""
    """
    if not value:
        return ""
    return re.sub(r"\s+", " ", value.strip())


def app_zone() -> ZoneInfo:
    name = get_settings().app_timezone
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError:
        logger.warning(f"Unknown APP_TIMEZONE '{name}', falling back to UTC")
        return ZoneInfo("UTC")


def now_local() -> datetime:
    """Current time in the application zone, naive, to the second."""
    return datetime.now(tz=app_zone()).replace(tzinfo=None, microsecond=0)


def to_app_datetime(value) -> Optional[datetime]:
    """
    Converts a datetime or ISO-8601 string to a naive datetime in the
    application zone, truncated to the second.

    Aware values are converted; naive values are taken as already local.
    Numbers are epoch milliseconds. Returns None for empty or unparsable
    input.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        try:
            parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    else:
        raw = str(value).strip()
        if not raw:
            return None
        if raw.endswith("Z") or raw.endswith("z"):
            raw = raw[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(app_zone()).replace(tzinfo=None)
    return parsed.replace(microsecond=0)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.strftime(TIMESTAMP_FORMAT)


def format_to_app_timezone(value) -> Optional[str]:
    """Same as to_app_datetime, rendered as 'YYYY-MM-DD HH:MM:SS'."""
    return format_timestamp(to_app_datetime(value))
