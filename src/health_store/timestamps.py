"""Timestamp normalization for untrusted export input.

Every date-like field that reaches the store passes through
:func:`normalize_timestamp`, which is total: it returns a timezone-aware UTC
``datetime`` for anything it can read and :data:`EPOCH_FALLBACK` for
everything else.
"""

import math
import re
from datetime import UTC, datetime
from typing import Any

# Stored for missing or unreadable timestamps
EPOCH_FALLBACK = datetime(1970, 1, 1, tzinfo=UTC)

# Health Auto Export date format:
# "2022-06-12 23:59:00 +0400" -> "2022-06-12T23:59:00+04:00"
_DATE_SPACE_TZ_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})\s(\d{2}:\d{2}:\d{2})\s([+-])(\d{2})(\d{2})$")


def _normalize_date_string(value: str) -> str:
    """Rewrite the Health Auto Export date format to ISO 8601."""
    m = _DATE_SPACE_TZ_RE.match(value.strip())
    if m:
        return f"{m[1]}T{m[2]}{m[3]}{m[4]}:{m[5]}"
    return value.strip()


def _from_epoch_millis(value: float) -> datetime | None:
    if not math.isfinite(value):
        return None
    try:
        return datetime.fromtimestamp(value / 1000, tz=UTC)
    except (OverflowError, OSError, ValueError):
        return None


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def normalize_timestamp(value: Any) -> datetime:
    """Parse a date-like value into a UTC datetime.

    Args:
        value: A ``datetime``, epoch milliseconds, or an ISO 8601 /
            Health Auto Export date string. Anything else is accepted too.

    Returns:
        The parsed instant in UTC, or ``EPOCH_FALLBACK`` when the value is
        missing or cannot be read.
    """
    if isinstance(value, datetime):
        try:
            return _as_utc(value)
        except (OverflowError, ValueError):
            return EPOCH_FALLBACK

    # bool is an int subclass but never a timestamp
    if isinstance(value, bool):
        return EPOCH_FALLBACK

    if isinstance(value, int | float):
        try:
            millis = float(value)
        except OverflowError:
            return EPOCH_FALLBACK
        return _from_epoch_millis(millis) or EPOCH_FALLBACK

    if isinstance(value, str) and value.strip():
        try:
            return _as_utc(datetime.fromisoformat(_normalize_date_string(value)))
        except (OverflowError, ValueError):
            return EPOCH_FALLBACK

    return EPOCH_FALLBACK


def parse_epoch_millis(value: str | None) -> datetime | None:
    """Parse a query bound given as epoch milliseconds.

    Returns None when the bound is absent or not a usable number.
    """
    if value is None or not value.strip():
        return None
    try:
        millis = float(value)
    except ValueError:
        return None
    return _from_epoch_millis(millis)


def format_timestamp(value: datetime) -> str:
    """Render a datetime as ``YYYY-MM-DDTHH:MM:SS.mmmZ`` in UTC.

    Stored dates use this form so that string order matches time order.
    """
    return _as_utc(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")
