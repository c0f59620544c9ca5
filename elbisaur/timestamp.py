import math
import re
import time
from datetime import datetime, timezone
from typing import Optional

from dateutil import parser as dateutil_parser
from dateutil.tz import tzlocal

#: A time of day without date, `HH:mm` or `HH:mm:ss`.
TIME_OF_DAY_PATTERN = re.compile(r"^(\d{1,2}):(\d{1,2})(?::(\d{1,2}))?$")

#: Date without time (`YYYY`, `YYYY-MM` or `YYYY-MM-DD`), which is interpreted as UTC.
DATE_ONLY_PATTERN = re.compile(r"^\d{4}(?:-\d{1,2}(?:-\d{1,2})?)?$")


def parse_timestamp(value: Optional[str] = None) -> Optional[int]:
    """ Converts the given date time string into a Unix timestamp.

    Date time strings without a timezone are interpreted as local time, unless
    they consist of a date only (these are UTC). Missing date components default
    to the first month or day. A bare `HH:mm` or `HH:mm:ss` time is interpreted
    as being today.

    Args:
        value: date time string, the current time is used if it is empty

    Returns:
        Seconds since the Unix epoch or None if the value could not be parsed
    """
    if not value:
        return int(time.time())

    value = value.strip()
    match = TIME_OF_DAY_PATTERN.match(value)
    if match:
        hours, minutes, seconds = (int(component or 0) for component in match.groups())
        try:
            date = datetime.now().replace(hour=hours, minute=minutes, second=seconds, microsecond=0)
        except ValueError:
            return None
        return math.floor(date.timestamp())

    default = datetime.now().replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
    try:
        date = dateutil_parser.parse(value, default=default)
    except (ValueError, OverflowError):
        return None

    if date.tzinfo is None and DATE_ONLY_PATTERN.match(value):
        date = date.replace(tzinfo=timezone.utc)
    return math.floor(date.timestamp())


def local_to_utc(local_timestamp: int, tz=None) -> int:
    """ Corrects a timestamp whose value is a local wall clock reading which has
    been treated as if it was UTC.

    Args:
        local_timestamp: naive local time in seconds since the Unix epoch
        tz: timezone of the wall clock, defaults to the local timezone

    Returns:
        the actual Unix timestamp of that moment
    """
    if tz is None:
        tz = tzlocal()
    offset = datetime.fromtimestamp(local_timestamp, tz).utcoffset()
    # UTC offset is applied in whole minutes
    offset_minutes = int(offset.total_seconds() // 60) if offset else 0
    return local_timestamp - offset_minutes * 60


def format_timestamp(timestamp: int) -> str:
    """ Formats a Unix timestamp as local date and time, e.g. `19/10/2026, 14:05:09`. """
    return datetime.fromtimestamp(timestamp).strftime("%d/%m/%Y, %H:%M:%S")
