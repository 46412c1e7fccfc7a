"""Wall-clock ``HH:MM`` parsing shared by availability validation and expansion."""

from datetime import time
import re
from typing import Union

MINUTES_PER_DAY = 24 * 60

_TIME_RE = re.compile(r"^(?P<hour>\d{1,2}):(?P<minute>\d{2})(?::(?P<second>\d{2}))?$")


def parse_time_of_day(value: Union[str, time]) -> int:
    """
    Parse ``HH:MM`` (or ``HH:MM:SS``) into minutes after local midnight.

    ``24:00`` is accepted and means end of day (1440). Seconds must be zero.

    Raises:
        ValueError: for anything else
    """
    if isinstance(value, time):
        return value.hour * 60 + value.minute

    match = _TIME_RE.match(str(value).strip())
    if not match:
        raise ValueError(f"Invalid time of day: {value!r}")

    hour = int(match.group("hour"))
    minute = int(match.group("minute"))
    second = int(match.group("second") or 0)
    if minute > 59 or second != 0:
        raise ValueError(f"Invalid time of day: {value!r}")
    if hour == 24 and minute == 0:
        return MINUTES_PER_DAY
    if hour > 23:
        raise ValueError(f"Invalid time of day: {value!r}")
    return hour * 60 + minute


def format_time_of_day(minutes: int) -> str:
    """Inverse of :func:`parse_time_of_day`."""
    if not 0 <= minutes <= MINUTES_PER_DAY:
        raise ValueError(f"Minutes out of range: {minutes}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"
