"""Main entry point and daemon for Sunshift."""

import argparse
import logging
import signal
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from sunshift.blender import BlendCache
from sunshift.config import Config, create_default_config, get_default_config_path
from sunshift.day_segment import get_day_segment
from sunshift.image_selector import ImageSelector
from sunshift.interpolation import calculate
from sunshift.scheduler import SchedulerEvent, WallpaperScheduler, next_update_time
from sunshift.scripts import ScriptManager
from sunshift.sun_calculator import PolarPeriod, SunCalculator
from sunshift.ticks import from_ticks, to_ticks
from sunshift.wallpaper_manager import WallpaperManager


logger = logging.getLogger(__name__)

SEGMENT_NAMES = ("Sunrise", "Day", "Sunset", "Night")


def setup_logging(verbose: bool = False):
    """Configure logging for stdout (systemd compatible)."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


def create_scheduler(config: Config, wallpaper_mgr: WallpaperManager) -> WallpaperScheduler:
    """Wire the scheduler and its collaborators from configuration."""
    sun_calc = SunCalculator(
        config.latitude,
        config.longitude,
        config.timezone,
        config.twilight_depression
    )

    cache = None
    if config.interpolation_enabled and config.cache_blends:
        cache_dir = Path(config.cache_dir).expanduser()
        cache = BlendCache(cache_dir)
        logger.info(f"Blend cache enabled at: {cache_dir}")

    observers = []
    if config.scripts_dir:
        observers.append(ScriptManager(config.scripts_dir))

    return WallpaperScheduler(config, sun_calc, wallpaper_mgr, cache=cache, observers=observers)


def install_signal_handlers(scheduler: WallpaperScheduler):
    """Map process signals to scheduler events."""
    handlers = {
        signal.SIGUSR1: SchedulerEvent.FORCE_REFRESH,
        signal.SIGUSR2: SchedulerEvent.TOGGLE_DARK_MODE,
        signal.SIGHUP: SchedulerEvent.TOGGLE_INTERPOLATION,
        signal.SIGINT: SchedulerEvent.STOP,
        signal.SIGTERM: SchedulerEvent.STOP,
    }

    for signum, event in handlers.items():
        signal.signal(signum, lambda _signum, _frame, event=event: scheduler.post(event))


def run_daemon(config: Config, verbose: bool = False):
    """
    Run the wallpaper scheduling daemon.

    Args:
        config: Configuration object
        verbose: Enable verbose logging
    """
    setup_logging(verbose)
    logger.info("Starting Sunshift daemon...")

    wallpaper_mgr = WallpaperManager(config.monitor)
    if not wallpaper_mgr.wait_for_hyprpaper():
        logger.error("Hyprpaper is not running. Please start hyprpaper first.")
        sys.exit(1)

    if config.interpolation_enabled:
        logger.info("Wallpaper interpolation enabled")
    if config.dark_mode:
        logger.info("Dark mode enabled")

    scheduler = create_scheduler(config, wallpaper_mgr)
    install_signal_handlers(scheduler)
    scheduler.run()
    logger.info("Sunshift stopped")


def run_once(config: Config):
    """
    Apply the wallpaper for the current moment and exit.

    Args:
        config: Configuration object
    """
    setup_logging(verbose=True)

    wallpaper_mgr = WallpaperManager(config.monitor)
    if not wallpaper_mgr.wait_for_hyprpaper(max_wait=5):
        logger.error("Hyprpaper is not running")
        sys.exit(1)

    scheduler = create_scheduler(config, wallpaper_mgr)
    state = scheduler.run_scheduler(force_image_update=True)
    scheduler.shutdown(wait=True)

    if state.image_id is None:
        logger.error("No image available for the current segment")
        sys.exit(1)

    logger.info("Wallpaper set successfully")


def run_test(config: Config, at: Optional[str] = None):
    """
    Show the current segment, image and next update (for testing).

    Args:
        config: Configuration object
        at: Optional HH:MM to evaluate today instead of now
    """
    setup_logging(verbose=False)

    sun_calc = SunCalculator(
        config.latitude,
        config.longitude,
        config.timezone,
        config.twilight_depression
    )
    now = sun_calc.now()
    if at:
        at_time = datetime.strptime(at, '%H:%M').time()
        now = sun_calc.tz.localize(datetime.combine(now.date(), at_time))

    data = sun_calc.get_solar_data(now.date())
    selector = ImageSelector(sun_calc)
    state = selector.get_image_data(data, config.theme, now, config.dark_mode)
    segment = get_day_segment(data, now)

    print(f"\nTime: {now.strftime('%Y-%m-%d %H:%M:%S %Z')}")
    print("\nSolar times:")
    print(f"  Sunrise start: {data.solar_times[0].strftime('%H:%M:%S')}")
    print(f"  Sunrise:       {data.sunrise_time.strftime('%H:%M:%S')}")
    print(f"  Sunset:        {data.sunset_time.strftime('%H:%M:%S')}")
    print(f"  Sunset end:    {data.solar_times[3].strftime('%H:%M:%S')}")
    if data.polar_period != PolarPeriod.NONE:
        print(f"  Polar period:  {data.polar_period.value}")

    print(f"\nSegment: {SEGMENT_NAMES[state.day_segment4]} ({segment.value})")
    print(f"Sun up: {'yes' if state.day_segment2 == 0 else 'no'}")

    if state.image_id is None:
        print("Image: none available for this segment")
        return

    start = from_ticks(state.start_tick, sun_calc.tz)
    end = from_ticks(state.end_tick, sun_calc.tz)
    print(f"Image: {state.image_id} (#{state.image_number + 1}) {config.theme.image_path(state.image_id)}")
    print(f"Valid: {start.strftime('%H:%M:%S')} -> {end.strftime('%Y-%m-%d %H:%M:%S')}")

    if config.interpolation_enabled:
        total = state.end_tick - state.start_tick
        progress = (to_ticks(now) - state.start_tick) / total if total > 0 else 1.0
        percent = calculate(progress, config.theme.interpolation)
        print(f"Blend: {percent:.2%} ({config.theme.interpolation.value})")

    next_update = next_update_time(sun_calc, data, now, state.day_segment2 == 0, end)

    time_until = next_update - now
    hours = int(time_until.total_seconds() // 3600)
    minutes = int((time_until.total_seconds() % 3600) // 60)
    print(f"\nNext update: {next_update.strftime('%Y-%m-%d %H:%M:%S')} (in {hours}h {minutes}m)\n")


def init_config():
    """Generate a configuration template."""
    config_path = get_default_config_path()

    if config_path.exists():
        response = input(f"Config file already exists at {config_path}. Overwrite? [y/N] ")
        if response.lower() != 'y':
            print("Aborted.")
            return

    create_default_config(config_path)
    print(f"Configuration template created at: {config_path}")
    print("\nPlease edit this file with your location and theme.")


def cli():
    """Command-line interface entry point."""
    parser = argparse.ArgumentParser(
        description="Sunshift - Solar-based dynamic wallpaper scheduler"
    )
    parser.add_argument(
        '--config', '-c',
        type=Path,
        help='Path to configuration file (default: ~/.config/sunshift/config.yaml)'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging'
    )

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    test_parser = subparsers.add_parser('test', help='Show current segment, image and next update')
    test_parser.add_argument(
        '--at',
        metavar='HH:MM',
        help='Evaluate at a time of day instead of now'
    )

    subparsers.add_parser('once', help='Set wallpaper once and exit')
    subparsers.add_parser('init', help='Generate configuration template')

    args = parser.parse_args()

    if args.command == 'init':
        init_config()
        return

    config_path = args.config or get_default_config_path()

    try:
        config = Config.load(config_path)
    except FileNotFoundError:
        print(f"Error: Configuration file not found: {config_path}", file=sys.stderr)
        print("Run 'sunshift init' to create a template.", file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        print(f"Error: Invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)

    if args.command == 'test':
        try:
            run_test(config, at=args.at)
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
    elif args.command == 'once':
        run_once(config)
    else:
        run_daemon(config, verbose=args.verbose)


if __name__ == '__main__':
    cli()
