"""Shared validation utilities"""

import re
from datetime import date, datetime
from typing import Optional, Union

_TIME_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)(?::[0-5]\d)?$")


def parse_calendar_date(value: Union[date, datetime, str, None]) -> Optional[date]:
    """
    Parse a calendar date from a date, datetime or ISO string.

    Strings may carry a time component ("2025-01-31T10:00:00Z"), only the
    first ten characters are used.

    Returns:
        The date, or None when value is empty

    Raises:
        ValueError: If the value is not a valid calendar date
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        return value.date()

    if isinstance(value, date):
        return value

    if not isinstance(value, str):
        raise ValueError(f"Unsupported date value: {value!r}")

    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        raise ValueError(f"Invalid date: {value!r}. Expected YYYY-MM-DD") from None


def validate_time_of_day(value: Optional[str]) -> Optional[str]:
    """
    Validate a time of day and normalize it to HH:MM.

    Raises:
        ValueError: If the time is not HH:MM or HH:MM:SS
    """
    if not value:
        return value

    match = _TIME_PATTERN.match(value.strip())
    if not match:
        raise ValueError("Time must be in HH:MM format")

    return f"{int(match.group(1)):02d}:{match.group(2)}"
