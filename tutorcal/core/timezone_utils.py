"""
Timezone utilities for the TutorCal scheduling backend.

Availability rules are stored as wall-clock times in the teacher's timezone
while lessons are stored as UTC instants. Everything that crosses that
boundary goes through this module so DST handling lives in one place.
"""

from datetime import date, datetime, time, timedelta, tzinfo
import logging
from typing import TYPE_CHECKING, Optional

import pytz

from .config import settings

if TYPE_CHECKING:
    from tutorcal.models.user import User

logger = logging.getLogger(__name__)


def get_timezone(name: Optional[str]) -> tzinfo:
    """
    Resolve an IANA timezone name.

    Unknown or empty names fall back to the configured default timezone.
    """
    if name:
        try:
            return pytz.timezone(name)
        except pytz.UnknownTimeZoneError:
            logger.warning("Unknown timezone %r; falling back to %s", name, settings.default_timezone)
    return pytz.timezone(settings.default_timezone)


def get_user_timezone(user: "User") -> tzinfo:
    """
    Get user's timezone preference.

    Args:
        user: User object

    Returns:
        User's timezone as pytz timezone object
    """
    return get_timezone(getattr(user, "timezone", None))


def utc_now() -> datetime:
    """Current instant as an aware UTC datetime."""
    return datetime.now(pytz.UTC)


def ensure_utc(dt: datetime) -> datetime:
    """
    Normalize a datetime to an aware UTC datetime.

    Naive values are assumed to already be UTC (SQLite drops tzinfo).
    """
    if dt.tzinfo is None:
        return pytz.UTC.localize(dt)
    return dt.astimezone(pytz.UTC)


def localize_wall_clock(day: date, wall_time: time, tz: tzinfo) -> datetime:
    """
    Combine a local calendar date and wall-clock time into a UTC instant.

    DST policy: a wall time skipped by a spring-forward transition is read
    with the pre-transition offset (02:30 becomes 03:30 local), and an
    ambiguous wall time during fall-back resolves to the standard-time
    occurrence.
    """
    naive = datetime.combine(day, wall_time)
    localize = getattr(tz, "localize", None)
    if localize is not None:
        local_dt = localize(naive, is_dst=False)
    else:
        local_dt = naive.replace(tzinfo=tz)
    return local_dt.astimezone(pytz.UTC)


def start_of_local_day(day: date, tz: tzinfo) -> datetime:
    """UTC instant of local midnight starting ``day``."""
    return localize_wall_clock(day, time(0, 0), tz)


def local_date(dt: datetime, tz: tzinfo) -> date:
    """Calendar date of an instant as seen in ``tz``."""
    return ensure_utc(dt).astimezone(tz).date()


def local_day_bounds(dt: datetime, tz: tzinfo) -> tuple[datetime, datetime]:
    """UTC bounds ``[start, end)`` of the local day containing ``dt``."""
    day = local_date(dt, tz)
    return start_of_local_day(day, tz), start_of_local_day(day + timedelta(days=1), tz)


def to_utc_iso(dt: datetime) -> str:
    """Render an instant as ``YYYY-MM-DDTHH:MM:SSZ``."""
    return ensure_utc(dt).strftime("%Y-%m-%dT%H:%M:%SZ")
