"""
Timestamp normalization.

Every TOTP computation works on integer Unix seconds. Callers may hand in
an epoch number, a datetime, the literal "now", or a date string.
"""
import math
import time
from datetime import datetime, timezone
from typing import Callable, Union

from dateutil import parser as date_parser

Clock = Callable[[], float]
TimestampLike = Union[int, float, datetime, str]


def to_epoch(at: TimestampLike = "now", clock: Clock = time.time) -> int:
    """
    Normalize a timestamp description to whole Unix seconds.

    Naive datetimes and date strings without an offset are read as UTC.

    Raises:
        ValueError: If a string cannot be parsed as a date.
    """
    if isinstance(at, bool):
        raise TypeError("Timestamp cannot be a boolean")

    if isinstance(at, int):
        return at

    if isinstance(at, float):
        return math.floor(at)

    if isinstance(at, datetime):
        return _datetime_to_epoch(at)

    if isinstance(at, str):
        value = at.strip()
        if value.lower() == "now":
            return math.floor(clock())
        if value.lstrip("-").isdigit():
            return int(value)
        try:
            parsed = date_parser.parse(value)
        except (ValueError, OverflowError) as e:
            raise ValueError(f"Unparseable timestamp: {at!r}") from e
        return _datetime_to_epoch(parsed)

    raise TypeError(f"Unsupported timestamp type: {type(at).__name__}")


def from_epoch(seconds: Union[int, float]) -> datetime:
    """Aware UTC datetime for an epoch value."""
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def _datetime_to_epoch(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return math.floor(value.timestamp())
