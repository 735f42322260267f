"""Wall-clock time helpers shared by the slot expander and conflict checks.

All scheduling math happens on integer minutes since midnight. Sessions
never cross midnight, so nothing here wraps around to the next day.
"""

import re

from studio_scheduling.errors import InvalidSlot, InvalidTimeFormat, OutOfRange

MINUTES_PER_DAY = 24 * 60
LAST_MINUTE = MINUTES_PER_DAY - 1

_TIME_RE = re.compile(r"^(\d{2}):(\d{2})(?::(\d{2}))?$")


def time_to_minutes(value: str) -> int:
    """Convert ``HH:MM`` or ``HH:MM:SS`` to minutes since midnight.

    Seconds are accepted and truncated.

    Examples:
        >>> time_to_minutes("09:30")
        570
        >>> time_to_minutes("23:59:59")
        1439
    """
    if not isinstance(value, str):
        raise InvalidTimeFormat(f"Time must be a string, got {type(value).__name__}")
    match = _TIME_RE.match(value.strip())
    if not match:
        raise InvalidTimeFormat(f"Invalid time {value!r}; expected HH:MM or HH:MM:SS")
    hours, minutes = int(match.group(1)), int(match.group(2))
    seconds = int(match.group(3) or 0)
    if hours > 23 or minutes > 59 or seconds > 59:
        raise InvalidTimeFormat(f"Invalid time {value!r}; out of the 24-hour clock")
    return hours * 60 + minutes


def minutes_to_time(minutes: int) -> str:
    """Format minutes since midnight as ``HH:MM``."""
    if not 0 <= minutes <= LAST_MINUTE:
        raise OutOfRange(f"{minutes} minutes is outside a single day")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def normalize_time(value: str) -> str:
    """Canonical ``HH:MM`` form of a time string."""
    return minutes_to_time(time_to_minutes(value))


def add_minutes(value: str, delta: int) -> str:
    """Shift a time by ``delta`` minutes without wrapping past midnight."""
    total = time_to_minutes(value) + delta
    if not 0 <= total <= LAST_MINUTE:
        raise OutOfRange(
            f"{value} {'+' if delta >= 0 else '-'} {abs(delta)} minutes leaves the day"
        )
    return minutes_to_time(total)


def intervals_overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """Whether half-open intervals ``[start_a, end_a)`` and ``[start_b, end_b)`` overlap."""
    return not (end_a <= start_b or end_b <= start_a)


def validate_interval(start: str, end: str) -> tuple[int, int]:
    """Parse a start/end pair, rejecting zero and negative durations."""
    start_min, end_min = time_to_minutes(start), time_to_minutes(end)
    if start_min >= end_min:
        raise InvalidSlot(f"End time {end} must be after start time {start}")
    return start_min, end_min
