"""Normalization of operator-typed appointment timestamps."""

from datetime import datetime

from frontdesk.core.exceptions import InvalidFormatException

# Tried in order; the first that parses wins
ACCEPTED_FORMATS = ("%Y-%m-%d %H:%M", "%Y-%m-%d %H:%M:%S")

DISPLAY_FORMAT = "%Y-%m-%d %H:%M"


def parse_timestamp(text: str) -> datetime:
    """
    Parse a wall-clock timestamp typed at the front desk.

    Blank input is the caller's concern and must be rejected before this
    is called.

    Args:
        text: ``YYYY-MM-DD HH:MM`` or ``YYYY-MM-DD HH:MM:SS``

    Returns:
        Naive datetime; seconds are kept when given

    Raises:
        InvalidFormatException: If no accepted format matches
    """
    candidate = text.strip()
    for fmt in ACCEPTED_FORMATS:
        try:
            return datetime.strptime(candidate, fmt)
        except ValueError:
            continue
    raise InvalidFormatException(text)


def format_timestamp(value: datetime | None) -> str:
    """Render a timestamp the way the front desk displays it."""
    if value is None:
        return ""
    return value.strftime(DISPLAY_FORMAT)
