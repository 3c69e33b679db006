"""Tick arithmetic for exact interval math.

A tick is one microsecond since the Unix epoch. Every segment boundary is
converted to ticks before it is divided, so sub-interval edges are integers
and reproducible.
"""

from datetime import date, datetime, time, timedelta, tzinfo

import pytz


TICKS_PER_SECOND = 1_000_000
TICKS_PER_MILLISECOND = 1_000

EPOCH = datetime(1970, 1, 1, tzinfo=pytz.utc)
_ONE_TICK = timedelta(microseconds=1)


def to_ticks(moment: datetime) -> int:
    """Convert a timezone-aware datetime to ticks."""
    if moment.tzinfo is None:
        raise ValueError(f"Naive datetime cannot be converted to ticks: {moment}")
    return (moment - EPOCH) // _ONE_TICK


def from_ticks(ticks: int, tz: tzinfo) -> datetime:
    """Convert ticks back to an aware datetime in the given timezone."""
    return (EPOCH + timedelta(microseconds=ticks)).astimezone(tz)


def local_midnight(day: date, tz) -> datetime:
    """Return 00:00 local time of a calendar day."""
    naive = datetime.combine(day, time(0, 0))
    if hasattr(tz, 'localize'):
        return tz.localize(naive)
    return naive.replace(tzinfo=tz)


def next_local_midnight(day: date, tz) -> datetime:
    """Return 00:00 local time of the day after `day`."""
    return local_midnight(day + timedelta(days=1), tz)
