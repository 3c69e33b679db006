"""Configuration loading and validation."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import pytz
import yaml

from sunshift.theme import ThemeConfig


logger = logging.getLogger(__name__)


@dataclass
class Config:
    """Sunshift configuration."""

    latitude: float
    longitude: float
    timezone: str
    theme: Optional[ThemeConfig] = None
    monitor: str = ""
    dark_mode: bool = False
    full_screen_pause: bool = False
    twilight_depression: float = 6.0
    scripts_dir: Optional[Path] = None

    # Interpolation settings
    interpolation_enabled: bool = False
    blend_threshold: float = 0.01
    cache_blends: bool = True
    cache_dir: str = "~/.cache/sunshift"

    # Scheduler settings
    heartbeat_interval: float = 60.0
    timer_tolerance_ms: float = 15.6
    clock_jump_tolerance: float = 5.0

    @classmethod
    def load(cls, config_path: Path, validate_paths: bool = True) -> "Config":
        """
        Load and validate configuration from YAML file.

        Args:
            config_path: Path to configuration file
            validate_paths: If True, disable theme segments whose images are missing

        Returns:
            Config instance

        Raises:
            ValueError: If configuration is invalid
            FileNotFoundError: If config file doesn't exist
        """
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path) as f:
            data = yaml.safe_load(f)

        if not data:
            raise ValueError("Configuration file is empty")

        return cls.from_dict(data, base_dir=config_path.parent, validate_paths=validate_paths)

    @classmethod
    def from_dict(cls, data: dict, base_dir: Optional[Path] = None, validate_paths: bool = True) -> "Config":
        """Build a Config from parsed YAML data."""
        location = data.get('location', {})
        latitude = location.get('latitude')
        longitude = location.get('longitude')
        timezone = location.get('timezone')

        if latitude is None:
            raise ValueError("Missing required field: location.latitude")
        if longitude is None:
            raise ValueError("Missing required field: location.longitude")
        if timezone is None:
            raise ValueError("Missing required field: location.timezone")

        if not (-90 <= latitude <= 90):
            raise ValueError(f"Latitude must be between -90 and 90, got: {latitude}")
        if not (-180 <= longitude <= 180):
            raise ValueError(f"Longitude must be between -180 and 180, got: {longitude}")

        if timezone not in pytz.all_timezones:
            raise ValueError(
                f"Invalid timezone: {timezone}. "
                f"Must be a valid IANA timezone (e.g., 'US/Pacific', 'Europe/London')"
            )

        theme = None
        theme_data = data.get('theme')
        if theme_data:
            theme = ThemeConfig.from_dict(theme_data, base_dir=base_dir)
            if validate_paths:
                if not theme.directory.is_dir():
                    raise ValueError(f"Theme directory not found: {theme.directory}")
                theme = theme.drop_missing_images()
        else:
            logger.warning("No theme configured, segments will be reported without wallpapers")

        settings = data.get('settings', {})

        twilight_depression = settings.get('twilight_depression', 6.0)
        if not (0 <= twilight_depression <= 18):
            raise ValueError(
                f"Twilight depression must be between 0 and 18 degrees, got: {twilight_depression}"
            )

        scripts_dir = settings.get('scripts_dir')
        if scripts_dir:
            scripts_dir = Path(os.path.expanduser(os.path.expandvars(scripts_dir)))

        # Interpolation settings (nested under settings.interpolation)
        interpolation = settings.get('interpolation', {})
        blend_threshold = interpolation.get('threshold', 0.01)
        if not (0 < blend_threshold < 1):
            raise ValueError(f"Interpolation threshold must be between 0 and 1, got: {blend_threshold}")

        # Scheduler settings (nested under settings.scheduler)
        scheduler = settings.get('scheduler', {})
        heartbeat_interval = scheduler.get('heartbeat_interval', 60)
        timer_tolerance_ms = scheduler.get('timer_tolerance_ms', 15.6)
        clock_jump_tolerance = scheduler.get('clock_jump_tolerance', 5)

        if not (1 <= heartbeat_interval <= 3600):
            raise ValueError(
                f"Heartbeat interval must be between 1 and 3600 seconds, got: {heartbeat_interval}"
            )
        if timer_tolerance_ms < 0:
            raise ValueError(f"Timer tolerance cannot be negative, got: {timer_tolerance_ms}")
        if clock_jump_tolerance <= 0:
            raise ValueError(f"Clock jump tolerance must be positive, got: {clock_jump_tolerance}")

        return cls(
            latitude=latitude,
            longitude=longitude,
            timezone=timezone,
            theme=theme,
            monitor=settings.get('monitor', ''),
            dark_mode=settings.get('dark_mode', False),
            full_screen_pause=settings.get('full_screen_pause', False),
            twilight_depression=twilight_depression,
            scripts_dir=scripts_dir,
            interpolation_enabled=interpolation.get('enabled', False),
            blend_threshold=blend_threshold,
            cache_blends=interpolation.get('cache_blends', True),
            cache_dir=interpolation.get('cache_dir', '~/.cache/sunshift'),
            heartbeat_interval=float(heartbeat_interval),
            timer_tolerance_ms=float(timer_tolerance_ms),
            clock_jump_tolerance=float(clock_jump_tolerance),
        )


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    xdg_config_home = os.environ.get('XDG_CONFIG_HOME', os.path.expanduser('~/.config'))
    return Path(xdg_config_home) / 'sunshift' / 'config.yaml'


CONFIG_TEMPLATE = """# Sunshift configuration

location:
  latitude: 37.7749      # Your latitude
  longitude: -122.4194   # Your longitude
  timezone: "US/Pacific" # Your IANA timezone

theme:
  directory: ~/Pictures/themes/mojave    # May contain a theme.json
  image_filename: "mojave_dynamic_*.jpeg" # '*' is replaced by the image id
  sunrise: [1, 2, 3]
  day: [4, 5, 6, 7, 8, 9, 10]
  sunset: [11, 12, 13]
  night: [14, 15, 16]
  interpolation: cubic   # none, linear, quad, cubic, quart, quint, sine, circle, exponential

settings:
  monitor: ""                # Monitor name (empty = all monitors)
  dark_mode: false           # Always show night images
  full_screen_pause: false   # Defer changes while a window is full screen
  twilight_depression: 6     # Sun depression bounding sunrise/sunset (6 = civil)
  scripts_dir: "~/.config/sunshift/scripts"  # Executables run after each change

  # Cross-fade between consecutive images (optional)
  interpolation:
    enabled: false
    threshold: 0.01          # Minimum blend change between renders
    cache_blends: true
    cache_dir: "~/.cache/sunshift"

  scheduler:
    heartbeat_interval: 60   # Seconds between wake-up checks
    timer_tolerance_ms: 15.6 # Shorter timer delays fire immediately
    clock_jump_tolerance: 5  # Seconds of clock change treated as resume/time change
"""


def create_default_config(config_path: Path) -> None:
    """Create a default configuration template file.

    Args:
        config_path: Path where the config file should be created
    """
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(CONFIG_TEMPLATE)
