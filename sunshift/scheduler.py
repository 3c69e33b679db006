"""Wake-up scheduling and wallpaper application.

A single loop consumes typed events. Two deadlines feed it: a coarse
heartbeat that notices missed wake-ups (suspend/resume, clock changes) and a
precise one-shot armed for the next image or solar boundary. Every event,
whether timer driven or posted from outside, goes through `handle_event`.
"""

import logging
import queue
import time
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, Optional

from sunshift.blender import BlendCache, ImageBlender, compose_blend
from sunshift.config import Config
from sunshift.day_segment import is_sun_up
from sunshift.fullscreen import FullScreenGate
from sunshift.image_selector import ImageSelector, SchedulerState
from sunshift.scripts import SegmentReport
from sunshift.sun_calculator import PolarPeriod, SolarData
from sunshift.ticks import (
    TICKS_PER_MILLISECOND,
    TICKS_PER_SECOND,
    from_ticks,
    next_local_midnight,
    to_ticks,
)
from sunshift.transition_tracker import TransitionTracker


logger = logging.getLogger(__name__)

# The image after an interval is looked up just past its end tick
NEXT_IMAGE_OFFSET = timedelta(seconds=1)
# Shortest gap between two blend steps, in seconds
MIN_BLEND_INTERVAL = 1.0


class SchedulerEvent(Enum):
    """Events consumed by the scheduler loop."""

    HEARTBEAT = "heartbeat"
    PRECISE_BOUNDARY = "precise_boundary"
    POWER_RESUME = "power_resume"
    TIME_CHANGED = "time_changed"
    FORCE_REFRESH = "force_refresh"
    TOGGLE_DARK_MODE = "toggle_dark_mode"
    TOGGLE_INTERPOLATION = "toggle_interpolation"
    BLEND_STEP = "blend_step"
    STOP = "stop"


def next_update_time(
    sun_calc,
    data: SolarData,
    now: datetime,
    sun_up: bool,
    next_image_update: Optional[datetime]
) -> datetime:
    """
    Earlier of the image boundary and the next solar boundary of interest.

    Args:
        sun_calc: SunCalculator (or compatible) providing `tz` and later days
        data: Solar data for the calendar day of `now`
        now: Evaluated moment
        sun_up: Whether the sun is up at `now`
        next_image_update: End of the current image interval, or None

    Returns:
        When the scheduler should evaluate again
    """
    if data.polar_period != PolarPeriod.NONE:
        next_time = next_local_midnight(data.date, sun_calc.tz)
    elif sun_up:
        next_time = data.sunset_time
    elif now < data.sunrise_time:
        next_time = data.sunrise_time
    else:
        tomorrow = sun_calc.get_solar_data(data.date + timedelta(days=1))
        next_time = tomorrow.sunrise_time

    if next_image_update is not None and next_image_update < next_time:
        next_time = next_image_update

    return next_time


class WallpaperScheduler:
    """Decides which wallpaper to show and when to look again."""

    def __init__(
        self,
        config: Config,
        sun_calc,
        wallpaper_mgr,
        cache: Optional[BlendCache] = None,
        observers: Iterable[Callable[[SegmentReport], None]] = (),
        gate: Optional[FullScreenGate] = None,
        clock: Optional[Callable[[], datetime]] = None,
        monotonic: Optional[Callable[[], float]] = None,
        executor=None
    ):
        """
        Initialize scheduler.

        Args:
            config: Loaded configuration (mode flags are read on every evaluation)
            sun_calc: SunCalculator (or compatible) providing solar data and `tz`
            wallpaper_mgr: WallpaperManager applying files
            cache: BlendCache for blended frames, or None
            observers: Callables receiving a SegmentReport after each evaluation
            gate: FullScreenGate deferring events, created from config if None
            clock: Returns the current aware datetime (defaults to sun_calc.now)
            monotonic: Monotonic seconds for timer deadlines
            executor: Executor for blend composites (single worker by default)
        """
        self.config = config
        self.theme = config.theme
        self.sun_calc = sun_calc
        self.wallpaper_mgr = wallpaper_mgr
        self.selector = ImageSelector(sun_calc)
        self.tracker = TransitionTracker(config.blend_threshold)
        self.blender = ImageBlender()
        self.cache = cache
        self.observers = list(observers)

        self.gate = gate or FullScreenGate(config.full_screen_pause)
        if self.gate.replay is None:
            self.gate.replay = lambda: self.post(SchedulerEvent.PRECISE_BOUNDARY)

        self.clock = clock or sun_calc.now
        self.monotonic = monotonic or time.monotonic
        self.timer_tolerance_ticks = int(config.timer_tolerance_ms * TICKS_PER_MILLISECOND)
        self.blend_dir = Path(config.cache_dir).expanduser()

        self.last_image_path: Optional[Path] = None
        self.next_update_time: Optional[datetime] = None
        self.timer_delay: Optional[float] = None

        # SimpleQueue.put is reentrant, so signal handlers can post while the
        # loop is blocked in get()
        self._events: queue.SimpleQueue = queue.SimpleQueue()
        self._precise_deadline: Optional[float] = None
        self._heartbeat_deadline: Optional[float] = None
        self._blend_deadline: Optional[float] = None
        self._last_heartbeat: Optional[tuple] = None

        self._executor = executor or ThreadPoolExecutor(
            max_workers=1,
            thread_name_prefix="sunshift-blend"
        )
        self._pending_blend: Optional[Future] = None
        self._apply_serial = 0

    # Event loop

    def post(self, event: SchedulerEvent):
        """Queue an event for the scheduler loop (thread-safe)."""
        self._events.put(event)

    def stop(self):
        self.post(SchedulerEvent.STOP)

    def run(self):
        """Run the scheduler loop until a STOP event arrives."""
        logger.info("Scheduler loop started")
        self._heartbeat_deadline = self.monotonic() + self.config.heartbeat_interval

        try:
            self.run_scheduler(force_image_update=True)
        except Exception as e:
            logger.error(f"Initial evaluation failed: {e}", exc_info=True)

        while True:
            try:
                event = self._events.get(timeout=self._next_timeout())
            except queue.Empty:
                event = self._expired_event()
                if event is None:
                    continue

            if event == SchedulerEvent.STOP:
                logger.info("Scheduler loop stopping")
                break

            try:
                self.handle_event(event)
            except Exception as e:
                logger.error(f"Error handling {event.value} event: {e}", exc_info=True)

        self.shutdown()

    def shutdown(self, wait: bool = False):
        """Stop the blend worker; without `wait`, queued composites are dropped."""
        self._executor.shutdown(wait=wait, cancel_futures=not wait)

    def _next_timeout(self) -> float:
        deadlines = [
            d for d in (self._heartbeat_deadline, self._precise_deadline, self._blend_deadline)
            if d is not None
        ]
        if not deadlines:
            return self.config.heartbeat_interval
        return max(0.0, min(deadlines) - self.monotonic())

    def _expired_event(self) -> Optional[SchedulerEvent]:
        """Turn an expired deadline into its event."""
        now = self.monotonic()

        if self._precise_deadline is not None and now >= self._precise_deadline:
            self._precise_deadline = None
            return SchedulerEvent.PRECISE_BOUNDARY

        if self._blend_deadline is not None and now >= self._blend_deadline:
            self._blend_deadline = None
            return SchedulerEvent.BLEND_STEP

        if self._heartbeat_deadline is not None and now >= self._heartbeat_deadline:
            self._heartbeat_deadline = now + self.config.heartbeat_interval
            return SchedulerEvent.HEARTBEAT

        return None

    def handle_event(self, event: SchedulerEvent):
        """Single entry point for every scheduler event."""
        logger.debug(f"Handling event: {event.value}")

        if event == SchedulerEvent.HEARTBEAT:
            self.on_heartbeat()
        elif event in (
            SchedulerEvent.PRECISE_BOUNDARY,
            SchedulerEvent.POWER_RESUME,
            SchedulerEvent.TIME_CHANGED,
        ):
            self.handle_timer_event()
        elif event == SchedulerEvent.BLEND_STEP:
            if self.config.interpolation_enabled:
                self.update_interpolation()
        elif event == SchedulerEvent.FORCE_REFRESH:
            self.handle_timer_event(force_image_update=True)
        elif event == SchedulerEvent.TOGGLE_DARK_MODE:
            self.config.dark_mode = not self.config.dark_mode
            logger.info(f"Dark mode {'enabled' if self.config.dark_mode else 'disabled'}")
            self.run_scheduler()
        elif event == SchedulerEvent.TOGGLE_INTERPOLATION:
            self.config.interpolation_enabled = not self.config.interpolation_enabled
            logger.info(f"Interpolation {'enabled' if self.config.interpolation_enabled else 'disabled'}")
            self.run_scheduler()

    def on_heartbeat(self):
        """Catch missed wake-ups; otherwise advance the blend."""
        if self.config.full_screen_pause:
            self.gate.set_running_full_screen(self.wallpaper_mgr.is_fullscreen_active())

        now = self.clock()
        jumped = self._detect_clock_jump(now, self.monotonic())

        if jumped or (self.next_update_time is not None and now >= self.next_update_time):
            self.handle_timer_event()
        elif self.config.interpolation_enabled:
            self.update_interpolation()

    def _detect_clock_jump(self, now: datetime, mono: float) -> bool:
        """Compare wall-clock and monotonic progress since the previous heartbeat."""
        previous = self._last_heartbeat
        self._last_heartbeat = (now, mono)
        if previous is None:
            return False

        wall_elapsed = (now - previous[0]).total_seconds()
        mono_elapsed = mono - previous[1]
        drift = wall_elapsed - mono_elapsed

        if abs(drift) > self.config.clock_jump_tolerance:
            logger.info(f"Clock moved {drift:+.0f}s outside the timer (suspend or time change)")
            return True
        return False

    def handle_timer_event(self, force_image_update: bool = False):
        """Run a full evaluation unless the full-screen gate defers it."""
        if self.gate.should_defer():
            return
        self.run_scheduler(force_image_update)

    # Evaluation

    def run_scheduler(self, force_image_update: bool = False) -> SchedulerState:
        """
        Evaluate the current image, apply it and arm the precise timer.

        Args:
            force_image_update: Re-apply the image even if unchanged

        Returns:
            SchedulerState of this evaluation
        """
        self._precise_deadline = None
        self._blend_deadline = None

        tz = self.sun_calc.tz
        now = self.clock()
        data = self.sun_calc.get_solar_data(now.astimezone(tz).date())
        sun_up = is_sun_up(data, now)
        dark_mode = self.config.dark_mode
        theme = self.theme
        next_image_update = None

        if theme is not None and force_image_update:
            self.last_image_path = None

        state = self.selector.get_image_data(data, theme, now, dark_mode)

        if state.image_id is not None:
            next_image_update = from_ticks(state.end_tick, tz)

            if self.config.interpolation_enabled:
                next_moment = next_image_update + NEXT_IMAGE_OFFSET
                next_data = self._solar_data_for(next_moment, data)
                next_state = self.selector.get_image_data(next_data, theme, next_moment, dark_mode)
                next_id = next_state.image_id if next_state.image_id is not None else state.image_id

                with self.tracker.lock:
                    self.tracker.reset(state.image_id, next_id, state.start_tick, state.end_tick)
                    self.last_image_path = None
                    self.update_interpolation()
            else:
                self.set_wallpaper(state.image_id)
        elif theme is not None:
            logger.warning("Theme has no images for the current segment, skipping wallpaper update")
            with self.tracker.lock:
                self.tracker.clear()
                self._supersede_blend()

        report = SegmentReport(
            day_segment2=state.day_segment2,
            day_segment4=state.day_segment4,
            image_path=self.last_image_path if theme is not None else None,
        )
        for observer in self.observers:
            observer(report)

        self.next_update_time = self.get_next_update_time(data, now, sun_up, next_image_update)
        self.start_timer(self.next_update_time)
        return state

    def _solar_data_for(self, moment: datetime, known: SolarData) -> SolarData:
        day = moment.astimezone(self.sun_calc.tz).date()
        if day == known.date:
            return known
        return self.sun_calc.get_solar_data(day)

    def get_next_update_time(
        self,
        data: SolarData,
        now: datetime,
        sun_up: bool,
        next_image_update: Optional[datetime]
    ) -> datetime:
        """Earlier of the image boundary and the next solar boundary of interest."""
        return next_update_time(self.sun_calc, data, now, sun_up, next_image_update)

    def start_timer(self, future_time: datetime) -> float:
        """
        Arm the precise timer for `future_time`.

        Delays shorter than the timer tolerance fire after a single tick.

        Returns:
            Delay in seconds
        """
        interval_ticks = to_ticks(future_time) - to_ticks(self.clock())
        if interval_ticks < self.timer_tolerance_ticks:
            interval_ticks = 1

        self.timer_delay = interval_ticks / TICKS_PER_SECOND
        self._precise_deadline = self.monotonic() + self.timer_delay
        logger.debug(
            f"Next update at {future_time.strftime('%Y-%m-%d %H:%M:%S')} "
            f"(in {self.timer_delay:.1f}s)"
        )
        return self.timer_delay

    # Applying wallpapers

    def update_interpolation(self):
        """
        Render the blend step due now, if any.

        While two different images are blended, a blend deadline is armed for
        the time one threshold of linear progress takes, bounded by
        MIN_BLEND_INTERVAL and the heartbeat period.
        """
        with self.tracker.lock:
            if self.theme is None:
                return

            self._arm_blend_deadline()
            step = self.tracker.step(to_ticks(self.clock()), self.theme.interpolation)
            if step is None:
                return

            image_id = step.discrete_image
            if image_id is not None:
                self.set_wallpaper(image_id)
            else:
                self.set_blended_wallpaper(step.image_id1, step.image_id2, step.percent)

    def _arm_blend_deadline(self):
        interval_ticks = self.tracker.step_interval_ticks()
        if interval_ticks is None:
            self._blend_deadline = None
            return

        delay = interval_ticks / TICKS_PER_SECOND
        delay = max(MIN_BLEND_INTERVAL, min(delay, self.config.heartbeat_interval))
        self._blend_deadline = self.monotonic() + delay

    def set_wallpaper(self, image_id: int) -> bool:
        """
        Apply a single theme image.

        Returns:
            True if the wallpaper changed
        """
        with self.tracker.lock:
            path = self.theme.image_path(image_id)
            if path == self.last_image_path:
                return False

            self._supersede_blend()
            if not self.wallpaper_mgr.set_wallpaper(path):
                return False

            self.last_image_path = path
            return True

    def set_blended_wallpaper(self, image_id1: int, image_id2: int, percent: float):
        """Compose and apply a blend on the worker; stale results are dropped."""
        with self.tracker.lock:
            path1 = self.theme.image_path(image_id1)
            path2 = self.theme.image_path(image_id2)
            serial = self._supersede_blend()

            if self.cache:
                target = self.cache.cache_dir / self.cache.get_cache_key(path1, path2, percent)
            else:
                # Alternate output files so hyprpaper never reuses a stale decode
                target = self.blend_dir / f"current-{serial % 2}.jpg"
            self.last_image_path = target

            self._pending_blend = self._executor.submit(
                self._compose_and_apply, serial, path1, path2, percent, target
            )

    def _supersede_blend(self) -> int:
        """Invalidate any blend still in flight and return a fresh serial."""
        self._apply_serial += 1
        if self._pending_blend is not None:
            self._pending_blend.cancel()
            self._pending_blend = None
        return self._apply_serial

    def _compose_and_apply(
        self,
        serial: int,
        path1: Path,
        path2: Path,
        percent: float,
        output_path: Path
    ) -> Optional[Path]:
        try:
            output = compose_blend(self.blender, self.cache, path1, path2, percent, output_path)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to blend {path1.name} -> {path2.name}: {e}")
            return None

        with self.tracker.lock:
            if serial != self._apply_serial:
                logger.debug(f"Discarding stale blend {path1.name} -> {path2.name} ({percent:.2f})")
                return None

            self.wallpaper_mgr.set_wallpaper(output)
            return output
