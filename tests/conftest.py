"""Shared fixtures: a deterministic solar source, a theme and fake collaborators."""

from concurrent.futures import Future
from datetime import date, datetime, timedelta

import pytest
import pytz
from PIL import Image

from sunshift.config import Config
from sunshift.interpolation import InterpolationMethod
from sunshift.sun_calculator import PolarPeriod, SolarData
from sunshift.theme import ThemeConfig
from sunshift.ticks import local_midnight, next_local_midnight


DAY = date(2024, 3, 20)
UTC = pytz.utc


def at(hour: int, minute: int = 0, second: int = 0, day: date = DAY) -> datetime:
    """Aware UTC datetime on the test day."""
    return UTC.localize(datetime(day.year, day.month, day.day, hour, minute, second))


class FakeSunCalculator:
    """Dawn 06:00, sunrise 07:00, sunset 19:00, dusk 20:00 UTC on every day."""

    def __init__(self, polar=None):
        self.tz = UTC
        self.polar = polar or {}
        self.requested = []
        self.current = at(12)

    def now(self) -> datetime:
        return self.current

    def get_solar_data(self, day: date) -> SolarData:
        self.requested.append(day)
        period = self.polar.get(day, PolarPeriod.NONE)

        if period == PolarPeriod.POLAR_DAY:
            start = local_midnight(day, self.tz)
            end = next_local_midnight(day, self.tz)
            return SolarData(day, (start, start, end, end), start, end, period)
        if period == PolarPeriod.POLAR_NIGHT:
            noon = at(12, day=day)
            return SolarData(day, (noon,) * 4, noon, noon, period)

        times = tuple(at(h, day=day) for h in (6, 7, 19, 20))
        return SolarData(day, times, times[1], times[2])


class FakeWallpaperManager:
    """Records applied wallpapers."""

    def __init__(self):
        self.applied = []
        self.fullscreen = False

    def set_wallpaper(self, path) -> bool:
        self.applied.append(path)
        return True

    def is_fullscreen_active(self) -> bool:
        return self.fullscreen


class FakeClock:
    """Wall clock and monotonic clock that only move when told to."""

    def __init__(self, now: datetime):
        self.now = now
        self.mono = 1000.0

    def __call__(self) -> datetime:
        return self.now

    def monotonic(self) -> float:
        return self.mono

    def advance(self, **kwargs):
        delta = timedelta(**kwargs)
        self.now += delta
        self.mono += delta.total_seconds()

    def jump(self, **kwargs):
        """Move only the wall clock (suspend/resume or manual change)."""
        self.now += timedelta(**kwargs)


class ImmediateExecutor:
    """Runs submitted work inline."""

    def submit(self, fn, *args, **kwargs):
        future = Future()
        future.set_result(fn(*args, **kwargs))
        return future

    def shutdown(self, wait=True, cancel_futures=False):
        pass


class DeferredExecutor:
    """Holds submitted work until the test runs it."""

    def __init__(self):
        self.jobs = []

    def submit(self, fn, *args, **kwargs):
        future = Future()
        self.jobs.append((future, fn, args, kwargs))
        return future

    def shutdown(self, wait=True, cancel_futures=False):
        pass


@pytest.fixture
def sun_calc():
    return FakeSunCalculator()


@pytest.fixture
def theme_dir(tmp_path):
    directory = tmp_path / "theme"
    directory.mkdir()
    for image_id in range(1, 9):
        shade = image_id * 30
        Image.new('RGB', (4, 4), (shade, 0, 255 - shade)).save(directory / f"img_{image_id}.jpg")
    return directory


@pytest.fixture
def theme(theme_dir):
    return ThemeConfig(
        theme_id="test",
        directory=theme_dir,
        image_filename="img_*.jpg",
        sunrise_image_list=(1, 2),
        day_image_list=(3, 4, 5),
        sunset_image_list=(6,),
        night_image_list=(7, 8),
        interpolation=InterpolationMethod.LINEAR,
    )


@pytest.fixture
def config(theme, tmp_path):
    return Config(
        latitude=52.5,
        longitude=13.4,
        timezone="UTC",
        theme=theme,
        cache_dir=str(tmp_path / "cache"),
    )
