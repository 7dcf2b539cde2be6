"""Date display helpers."""

import logging
from datetime import date, datetime
from typing import Optional, Union

logger = logging.getLogger(__name__)


def _coerce(value: Union[str, date, datetime]) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def format_date(value: Optional[Union[str, date, datetime]]) -> str:
    """Render a date like ``March 5, 2025``.

    Returns ``"Not available"`` for a missing value and ``"Invalid date"``
    for one that cannot be parsed.
    """
    if value is None or value == "":
        return "Not available"
    try:
        parsed = _coerce(value)
    except (TypeError, ValueError, AttributeError):
        logger.warning("Invalid date value %r", value)
        return "Invalid date"
    return f"{parsed.strftime('%B')} {parsed.day}, {parsed.year}"


def days_until(value: Optional[datetime], now: Optional[datetime] = None) -> Optional[int]:
    """Whole days from ``now`` to ``value`` (negative once past)."""
    if value is None:
        return None
    now = now or datetime.now(value.tzinfo)
    return (value - now).days
