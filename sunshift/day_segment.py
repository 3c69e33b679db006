"""Day segment definitions and mapping logic."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from sunshift.sun_calculator import PolarPeriod, SolarData
from sunshift.ticks import local_midnight, next_local_midnight


class DaySegment(Enum):
    """Portions of the day with their own image lists."""

    SUNRISE = "sunrise"
    DAY = "day"
    SUNSET = "sunset"
    NIGHT = "night"
    ALL_DAY = "all_day"
    ALL_NIGHT = "all_night"

    @property
    def index4(self) -> int:
        """4-way classification: 0 sunrise, 1 day, 2 sunset, 3 night."""
        return _INDEX4[self]


_INDEX4 = {
    DaySegment.SUNRISE: 0,
    DaySegment.DAY: 1,
    DaySegment.ALL_DAY: 1,
    DaySegment.SUNSET: 2,
    DaySegment.NIGHT: 3,
    DaySegment.ALL_NIGHT: 3,
}


@dataclass(frozen=True)
class SegmentInfo:
    """A resolved segment: its images and the span they divide."""

    segment: DaySegment
    images: Optional[tuple]
    start: datetime
    end: datetime


def is_sun_up(data: SolarData, current: datetime) -> bool:
    """Whether `current` lies between sunrise and sunset."""
    return data.sunrise_time <= current < data.sunset_time


def get_day_segment(data: SolarData, current: datetime) -> DaySegment:
    """
    Determine the day segment based on sun position.

    Args:
        data: Solar data for the calendar day of `current`
        current: Current datetime (timezone-aware)

    Returns:
        DaySegment enum value
    """
    if data.polar_period == PolarPeriod.POLAR_DAY:
        return DaySegment.ALL_DAY
    elif data.polar_period == PolarPeriod.POLAR_NIGHT:
        return DaySegment.ALL_NIGHT

    times = data.solar_times
    if times[0] <= current < times[1]:
        return DaySegment.SUNRISE
    elif times[1] <= current < times[2]:
        return DaySegment.DAY
    elif times[2] <= current < times[3]:
        return DaySegment.SUNSET
    else:
        return DaySegment.NIGHT


def resolve_segment(
    data: SolarData,
    theme,
    dark_mode: bool,
    current: datetime,
    solar_source
) -> SegmentInfo:
    """
    Resolve the segment containing `current` and the span it covers.

    Night spans midnight, so the adjacent day's solar data is fetched from
    `solar_source` when needed. Dark mode always shows the night images and
    only distinguishes sun up from sun down.

    Args:
        data: Solar data for the calendar day of `current`
        theme: ThemeConfig, or None if no theme is loaded
        dark_mode: Force night imagery
        current: Current datetime (timezone-aware)
        solar_source: Object with get_solar_data(date) for adjacent days

    Returns:
        SegmentInfo; `images` is None when the theme lacks images for it
    """
    tz = getattr(solar_source, 'tz', current.tzinfo)
    today = data.date

    if data.polar_period != PolarPeriod.NONE:
        segment = get_day_segment(data, current)
        images = _images(theme, DaySegment.ALL_NIGHT if dark_mode else segment)
        return SegmentInfo(
            segment,
            images,
            local_midnight(today, tz),
            next_local_midnight(today, tz),
        )

    if dark_mode:
        return _resolve_dark_mode(data, theme, current, solar_source)

    segment = get_day_segment(data, current)
    times = data.solar_times

    if segment == DaySegment.SUNRISE:
        start, end = times[0], times[1]
    elif segment == DaySegment.DAY:
        start, end = times[1], times[2]
    elif segment == DaySegment.SUNSET:
        start, end = times[2], times[3]
    elif current < times[0]:
        # Night before dawn: yesterday's dusk -> today's dawn
        yesterday = solar_source.get_solar_data(today - timedelta(days=1))
        start, end = _night_start(yesterday, tz), times[0]
    else:
        # Night after dusk: today's dusk -> tomorrow's dawn
        tomorrow = solar_source.get_solar_data(today + timedelta(days=1))
        start, end = times[3], _night_end(tomorrow, tz)

    return SegmentInfo(segment, _images(theme, segment), start, end)


def _resolve_dark_mode(data: SolarData, theme, current: datetime, solar_source) -> SegmentInfo:
    """Two-way day/night resolution bounded by sunrise and sunset."""
    tz = getattr(solar_source, 'tz', current.tzinfo)
    today = data.date
    images = _images(theme, DaySegment.NIGHT)

    if is_sun_up(data, current):
        return SegmentInfo(DaySegment.DAY, images, data.sunrise_time, data.sunset_time)
    elif current < data.sunrise_time:
        yesterday = solar_source.get_solar_data(today - timedelta(days=1))
        start = _sunset_or_midnight(yesterday, tz)
        return SegmentInfo(DaySegment.NIGHT, images, start, data.sunrise_time)
    else:
        tomorrow = solar_source.get_solar_data(today + timedelta(days=1))
        end = _sunrise_or_midnight(tomorrow, tz)
        return SegmentInfo(DaySegment.NIGHT, images, data.sunset_time, end)


def _images(theme, segment: DaySegment) -> Optional[tuple]:
    if theme is None:
        return None
    return theme.image_list(segment)


def _night_start(data: SolarData, tz) -> datetime:
    """Where a night ending on the next day starts, given the previous day's data."""
    if data.polar_period != PolarPeriod.NONE:
        return next_local_midnight(data.date, tz)
    return data.solar_times[3]


def _night_end(data: SolarData, tz) -> datetime:
    """Where a night starting on the previous day ends, given the next day's data."""
    if data.polar_period != PolarPeriod.NONE:
        return local_midnight(data.date, tz)
    return data.solar_times[0]


def _sunset_or_midnight(data: SolarData, tz) -> datetime:
    if data.polar_period != PolarPeriod.NONE:
        return next_local_midnight(data.date, tz)
    return data.sunset_time


def _sunrise_or_midnight(data: SolarData, tz) -> datetime:
    if data.polar_period != PolarPeriod.NONE:
        return local_midnight(data.date, tz)
    return data.sunrise_time
