"""
Date helpers shared by the items, letters and couple modules.

Item dates arrive in several shapes: ``yyyy-MM-dd`` strings from the write
forms, full ISO strings for scheduled letters, and Firestore timestamps
(``datetime`` subclasses) read back from the store. Everything is normalised
to timezone-aware UTC datetimes before it is compared.
"""

from datetime import date, datetime, timezone
from typing import Any, Optional

from dateutil import parser as dateutil_parser

from app.utils.logger import get_logger

logger = get_logger(__name__)

# Sort key for values that cannot be parsed; they sink to the end of a
# date-descending list.
EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def now() -> datetime:
    """Current time as a UTC timezone-aware datetime."""
    return datetime.now(timezone.utc)


def to_utc(value: Any) -> Optional[datetime]:
    """
    Convert a stored date value into an aware UTC datetime.

    Args:
        value: ``datetime``, ``date``, ISO string or ``None``.

    Returns:
        Aware datetime, or ``None`` when the value is empty or unparseable.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            dt = dateutil_parser.isoparse(value)
        except ValueError:
            try:
                dt = dateutil_parser.parse(value)
            except (ValueError, OverflowError):
                logger.debug(f"Unparseable date value: {value!r}")
                return None
    else:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def date_sort_key(value: Any) -> datetime:
    """Key used to order items by their ``date`` field."""
    return to_utc(value) or EPOCH


def is_future(value: Any, reference: Optional[datetime] = None) -> bool:
    """True when ``value`` lies strictly after ``reference`` (default: now)."""
    dt = to_utc(value)
    if dt is None:
        return False
    return dt > (reference or now())


def days_together(start: Any, today: Optional[date] = None) -> int:
    """
    D-day counter shown on the home screen.

    The first day counts as day 1, so a couple that started today is on
    day 1 and one that started yesterday is on day 2.
    """
    start_dt = to_utc(start)
    if start_dt is None:
        return 0
    today = today or now().date()
    return (today - start_dt.date()).days + 1


def to_iso(value: Any) -> Any:
    """Render datetimes as ISO strings, leaving other values untouched."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
    return value


def serialize(obj: Any) -> Any:
    """Recursively convert datetimes inside documents into ISO strings."""
    if isinstance(obj, dict):
        return {k: serialize(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [serialize(v) for v in obj]
    return to_iso(obj)
