"""Solar time boundaries using astral library."""

import logging
from dataclasses import dataclass
from datetime import date as Date, datetime
from enum import Enum
from typing import Optional

from astral import LocationInfo
from astral.sun import dawn, dusk, elevation, noon, sunrise, sunset
import pytz

from sunshift.ticks import local_midnight, next_local_midnight


logger = logging.getLogger(__name__)


class PolarPeriod(Enum):
    """Whether the sun fails to rise or set on a calendar day."""

    NONE = "none"
    POLAR_DAY = "polar_day"
    POLAR_NIGHT = "polar_night"


@dataclass(frozen=True)
class SolarData:
    """Solar boundaries for one calendar day.

    `solar_times` holds [sunrise start, sunrise end, sunset start, sunset end],
    which are dawn, sunrise, sunset and dusk for the configured twilight.
    """

    date: Date
    solar_times: tuple
    sunrise_time: datetime
    sunset_time: datetime
    polar_period: PolarPeriod = PolarPeriod.NONE


class SunCalculator:
    """Calculate solar boundaries for a given location."""

    def __init__(
        self,
        latitude: float,
        longitude: float,
        timezone: str,
        twilight_depression: float = 6.0
    ):
        """
        Initialize sun calculator.

        Args:
            latitude: Latitude in degrees (-90 to 90)
            longitude: Longitude in degrees (-180 to 180)
            timezone: IANA timezone string (e.g., 'US/Pacific')
            twilight_depression: Sun depression in degrees bounding sunrise/sunset
        """
        self.location = LocationInfo(
            latitude=latitude,
            longitude=longitude,
            timezone=timezone
        )
        self.tz = pytz.timezone(timezone)
        self.twilight_depression = twilight_depression

    def now(self) -> datetime:
        """Current time in the configured timezone."""
        return datetime.now(self.tz)

    def get_solar_data(self, day: Optional[Date] = None) -> SolarData:
        """
        Get solar boundaries for a calendar day.

        Args:
            day: Date to calculate for (defaults to today)

        Returns:
            SolarData for the day
        """
        if day is None:
            day = self.now().date()
        elif isinstance(day, datetime):
            day = day.astimezone(self.tz).date()

        observer = self.location.observer

        try:
            rise = sunrise(observer, date=day, tzinfo=self.tz)
            set_ = sunset(observer, date=day, tzinfo=self.tz)
        except ValueError as e:
            return self._polar_data(day, e)

        start = self._twilight(dawn, day, local_midnight(day, self.tz))
        end = self._twilight(dusk, day, next_local_midnight(day, self.tz))

        return SolarData(
            date=day,
            solar_times=(min(start, rise), rise, set_, max(end, set_)),
            sunrise_time=rise,
            sunset_time=set_,
        )

    def _twilight(self, func, day: Date, fallback: datetime) -> datetime:
        """Compute dawn or dusk, falling back to a midnight during white nights."""
        try:
            return func(
                self.location.observer,
                date=day,
                depression=self.twilight_depression,
                tzinfo=self.tz
            )
        except ValueError:
            logger.debug(
                f"No {func.__name__} on {day} at depression "
                f"{self.twilight_depression}, using {fallback.strftime('%H:%M')}"
            )
            return fallback

    def _polar_data(self, day: Date, error: Exception) -> SolarData:
        """
        Build solar data for a day on which the sun never rises or never sets.

        Polar day covers the whole day as sun-up; polar night collapses every
        boundary to solar noon so the sun is never up.
        """
        solar_noon = noon(self.location.observer, date=day, tzinfo=self.tz)
        sun_up = elevation(self.location.observer, solar_noon) > 0

        if sun_up:
            start = local_midnight(day, self.tz)
            end = next_local_midnight(day, self.tz)
            logger.info(f"Polar day on {day}: {error}")
            return SolarData(
                date=day,
                solar_times=(start, start, end, end),
                sunrise_time=start,
                sunset_time=end,
                polar_period=PolarPeriod.POLAR_DAY,
            )

        logger.info(f"Polar night on {day}: {error}")
        return SolarData(
            date=day,
            solar_times=(solar_noon,) * 4,
            sunrise_time=solar_noon,
            sunset_time=solar_noon,
            polar_period=PolarPeriod.POLAR_NIGHT,
        )
