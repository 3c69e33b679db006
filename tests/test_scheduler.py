import queue
from dataclasses import replace
from datetime import timedelta
from pathlib import Path
from unittest.mock import patch

import pytest

from conftest import (
    DAY,
    DeferredExecutor,
    FakeClock,
    FakeSunCalculator,
    FakeWallpaperManager,
    ImmediateExecutor,
    at,
)
from sunshift.scheduler import SchedulerEvent, WallpaperScheduler, next_update_time
from sunshift.scripts import SegmentReport
from sunshift.sun_calculator import PolarPeriod


@pytest.fixture
def clock():
    return FakeClock(at(12))


@pytest.fixture
def manager():
    return FakeWallpaperManager()


@pytest.fixture
def reports():
    return []


@pytest.fixture
def make_scheduler(sun_calc, clock, manager, reports):
    def make(config, executor=None, calc=None):
        return WallpaperScheduler(
            config,
            calc or sun_calc,
            manager,
            observers=[reports.append],
            clock=clock,
            monotonic=clock.monotonic,
            executor=executor or ImmediateExecutor(),
        )
    return make


def names(paths):
    return [Path(p).name for p in paths]


def test_applies_current_image_and_arms_timer(make_scheduler, config, manager):
    scheduler = make_scheduler(config)
    state = scheduler.run_scheduler()

    assert state.image_id == 4
    assert names(manager.applied) == ["img_4.jpg"]
    assert scheduler.next_update_time == at(15)
    assert scheduler.timer_delay == pytest.approx(3 * 3600)


def test_unchanged_image_is_not_reapplied(make_scheduler, config, manager):
    scheduler = make_scheduler(config)
    scheduler.run_scheduler()
    scheduler.run_scheduler()
    assert len(manager.applied) == 1

    scheduler.run_scheduler(force_image_update=True)
    assert len(manager.applied) == 2


def test_observers_receive_segment_report(make_scheduler, config, reports, theme_dir):
    make_scheduler(config).run_scheduler()
    assert reports == [SegmentReport(0, 1, theme_dir / "img_4.jpg")]


@pytest.mark.parametrize("now, expected", [
    (at(12), at(19)),
    (at(3), at(7)),
    (at(6, 30), at(7)),
    (at(21), at(7, day=DAY + timedelta(days=1))),
])
def test_next_update_follows_sun_without_theme(make_scheduler, config, clock, reports, now, expected):
    clock.now = now
    scheduler = make_scheduler(replace(config, theme=None))
    scheduler.run_scheduler()

    assert scheduler.next_update_time == expected
    assert reports[0].image_path is None


def test_next_update_in_polar_period_is_midnight(make_scheduler, config):
    calc = FakeSunCalculator(polar={DAY: PolarPeriod.POLAR_NIGHT})
    scheduler = make_scheduler(replace(config, theme=None), calc=calc)
    scheduler.run_scheduler()
    assert scheduler.next_update_time == at(0, day=DAY + timedelta(days=1))


def test_incomplete_theme_skips_wallpaper(make_scheduler, config, theme, manager, reports):
    scheduler = make_scheduler(replace(config, theme=replace(theme, day_image_list=None)))
    state = scheduler.run_scheduler()

    assert state.image_id is None
    assert manager.applied == []
    assert reports == [SegmentReport(0, 1, None)]
    assert scheduler.next_update_time == at(19)


def test_short_delays_are_clamped(make_scheduler, config, clock):
    scheduler = make_scheduler(config)
    assert scheduler.start_timer(clock.now + timedelta(milliseconds=5)) == pytest.approx(1e-6)
    assert scheduler.start_timer(clock.now - timedelta(seconds=1)) == pytest.approx(1e-6)
    assert scheduler.start_timer(clock.now + timedelta(milliseconds=20)) == pytest.approx(0.02)


def test_precise_deadline_becomes_event(make_scheduler, config, clock):
    scheduler = make_scheduler(config)
    scheduler.start_timer(clock.now + timedelta(seconds=2))
    assert scheduler._expired_event() is None

    clock.advance(seconds=2)
    assert scheduler._expired_event() == SchedulerEvent.PRECISE_BOUNDARY
    assert scheduler._expired_event() is None


def test_heartbeat_deadline_repeats(make_scheduler, config, clock):
    scheduler = make_scheduler(config)
    scheduler._heartbeat_deadline = clock.mono + 60

    clock.advance(seconds=60)
    assert scheduler._expired_event() == SchedulerEvent.HEARTBEAT
    assert scheduler._heartbeat_deadline == clock.mono + 60


def test_heartbeat_after_suspend_runs_full_evaluation(make_scheduler, config, clock, manager):
    clock.now = at(14)
    scheduler = make_scheduler(config)
    scheduler.run_scheduler()
    assert scheduler.next_update_time == at(15)

    with patch.object(scheduler, 'run_scheduler', wraps=scheduler.run_scheduler) as run:
        clock.advance(seconds=60)
        scheduler.handle_event(SchedulerEvent.HEARTBEAT)
        run.assert_not_called()

        # Suspended for two hours: the wall clock moves, the monotonic one barely
        clock.jump(hours=2)
        clock.mono += 60
        scheduler.handle_event(SchedulerEvent.HEARTBEAT)
        run.assert_called_once()

    assert names(manager.applied) == ["img_4.jpg", "img_5.jpg"]


def test_heartbeat_catches_missed_precise_timer(make_scheduler, config, clock):
    clock.now = at(14)
    scheduler = make_scheduler(config)
    scheduler.run_scheduler()

    with patch.object(scheduler, 'run_scheduler', wraps=scheduler.run_scheduler) as run:
        clock.advance(hours=1, minutes=1)
        scheduler.handle_event(SchedulerEvent.HEARTBEAT)
        run.assert_called_once()


def test_clock_set_back_triggers_evaluation(make_scheduler, config, clock):
    clock.now = at(14)
    scheduler = make_scheduler(config)
    scheduler.run_scheduler()
    scheduler.handle_event(SchedulerEvent.HEARTBEAT)

    with patch.object(scheduler, 'run_scheduler', wraps=scheduler.run_scheduler) as run:
        clock.jump(hours=-3)
        clock.mono += 60
        scheduler.handle_event(SchedulerEvent.HEARTBEAT)
        run.assert_called_once()


def test_heartbeat_only_advances_blend(make_scheduler, config):
    config.interpolation_enabled = True
    scheduler = make_scheduler(config)
    scheduler.run_scheduler()

    with patch.object(scheduler, 'run_scheduler') as run, \
            patch.object(scheduler, 'update_interpolation') as update:
        scheduler.handle_event(SchedulerEvent.HEARTBEAT)
        run.assert_not_called()
        update.assert_called_once()


def test_interpolation_blends_and_throttles(make_scheduler, config, clock, manager):
    config.interpolation_enabled = True
    scheduler = make_scheduler(config)
    scheduler.run_scheduler()

    state = scheduler.tracker.state
    assert (state.image_id1, state.image_id2) == (4, 5)
    assert state.last_percent == pytest.approx(0.25)

    assert len(manager.applied) == 1
    blended = Path(manager.applied[0])
    assert blended.parent == Path(config.cache_dir)
    assert blended.exists()

    clock.advance(seconds=30)
    scheduler.handle_event(SchedulerEvent.HEARTBEAT)
    assert len(manager.applied) == 1

    clock.advance(minutes=10)
    scheduler.handle_event(SchedulerEvent.HEARTBEAT)
    assert len(manager.applied) == 2
    assert manager.applied[1] != manager.applied[0]


def test_interpolation_between_identical_images_is_discrete(make_scheduler, config, theme, manager):
    single = replace(theme, day_image_list=(3,), sunset_image_list=None)
    executor = DeferredExecutor()
    scheduler = make_scheduler(replace(config, theme=single, interpolation_enabled=True), executor)
    scheduler.run_scheduler()

    assert names(manager.applied) == ["img_3.jpg"]
    assert executor.jobs == []


def test_stale_blend_is_discarded(make_scheduler, config, clock, manager):
    config.interpolation_enabled = True
    executor = DeferredExecutor()
    scheduler = make_scheduler(config, executor)
    scheduler.run_scheduler()
    assert manager.applied == []
    assert len(executor.jobs) == 1

    clock.advance(hours=3)
    scheduler.run_scheduler()
    assert names(manager.applied) == ["img_5.jpg"]

    future, fn, args, kwargs = executor.jobs[0]
    assert future.cancelled()
    # Even if the composite had already started, its result is not applied
    assert fn(*args, **kwargs) is None
    assert names(manager.applied) == ["img_5.jpg"]


def test_full_screen_defers_and_replays_once(make_scheduler, config, clock, manager):
    config.full_screen_pause = True
    manager.fullscreen = True
    scheduler = make_scheduler(config)

    scheduler.handle_event(SchedulerEvent.HEARTBEAT)
    scheduler.handle_event(SchedulerEvent.PRECISE_BOUNDARY)
    scheduler.handle_event(SchedulerEvent.TIME_CHANGED)
    assert manager.applied == []
    assert scheduler.gate.timer_event_pending

    manager.fullscreen = False
    clock.advance(seconds=60)
    scheduler.handle_event(SchedulerEvent.HEARTBEAT)

    assert scheduler._events.get_nowait() == SchedulerEvent.PRECISE_BOUNDARY
    with pytest.raises(queue.Empty):
        scheduler._events.get_nowait()

    scheduler.handle_event(SchedulerEvent.PRECISE_BOUNDARY)
    assert names(manager.applied) == ["img_4.jpg"]


def test_toggle_dark_mode(make_scheduler, config, manager):
    scheduler = make_scheduler(config)
    scheduler.handle_event(SchedulerEvent.TOGGLE_DARK_MODE)

    assert config.dark_mode
    assert names(manager.applied) == ["img_7.jpg"]


def test_toggle_interpolation(make_scheduler, config):
    scheduler = make_scheduler(config)
    scheduler.handle_event(SchedulerEvent.TOGGLE_INTERPOLATION)

    assert config.interpolation_enabled
    assert scheduler.tracker.state.image_id1 == 4


def test_run_until_stopped(make_scheduler, config, manager):
    scheduler = make_scheduler(config)
    scheduler.post(SchedulerEvent.FORCE_REFRESH)
    scheduler.stop()
    scheduler.run()

    assert names(manager.applied) == ["img_4.jpg", "img_4.jpg"]


def test_loop_survives_handler_errors(make_scheduler, config):
    scheduler = make_scheduler(config)
    scheduler.post(SchedulerEvent.TIME_CHANGED)
    scheduler.stop()

    with patch.object(scheduler, 'handle_event', side_effect=RuntimeError("boom")) as handle:
        scheduler.run()
    handle.assert_called_once_with(SchedulerEvent.TIME_CHANGED)


def test_next_update_time_needs_only_a_solar_source(sun_calc):
    data = sun_calc.get_solar_data(DAY)
    assert next_update_time(sun_calc, data, at(21), False, None) == at(7, day=DAY + timedelta(days=1))
    assert next_update_time(sun_calc, data, at(12), True, at(15)) == at(15)


def test_segment_without_images_stops_blending(make_scheduler, config, theme, clock, manager):
    no_night = replace(theme, night_image_list=None)
    scheduler = make_scheduler(replace(config, theme=no_night, interpolation_enabled=True))
    scheduler.run_scheduler()
    assert len(manager.applied) == 1

    scheduler.handle_event(SchedulerEvent.TOGGLE_DARK_MODE)
    assert scheduler.tracker.state.image_id1 is None
    assert scheduler._blend_deadline is None

    clock.advance(minutes=30)
    scheduler.handle_event(SchedulerEvent.HEARTBEAT)
    assert len(manager.applied) == 1


def test_segment_without_images_drops_pending_blend(make_scheduler, config, theme, manager):
    executor = DeferredExecutor()
    no_night = replace(theme, night_image_list=None)
    scheduler = make_scheduler(replace(config, theme=no_night, interpolation_enabled=True), executor)
    scheduler.run_scheduler()

    scheduler.handle_event(SchedulerEvent.TOGGLE_DARK_MODE)

    future, fn, args, kwargs = executor.jobs[0]
    assert future.cancelled()
    assert fn(*args, **kwargs) is None
    assert manager.applied == []


def test_event_queue_is_reentrant_for_signal_handlers(make_scheduler, config):
    scheduler = make_scheduler(config)
    assert isinstance(scheduler._events, queue.SimpleQueue)


def test_blend_steps_follow_threshold(make_scheduler, config, clock, manager):
    config.interpolation_enabled = True
    config.blend_threshold = 0.001
    scheduler = make_scheduler(config)
    scheduler.run_scheduler()

    # One thousandth of the 4h interval
    assert scheduler._blend_deadline == pytest.approx(clock.mono + 14.4)

    clock.advance(seconds=15)
    assert scheduler._expired_event() == SchedulerEvent.BLEND_STEP
    scheduler.handle_event(SchedulerEvent.BLEND_STEP)
    assert len(manager.applied) == 2
    assert scheduler._blend_deadline == pytest.approx(clock.mono + 14.4)


def test_blend_steps_are_bounded_by_heartbeat(make_scheduler, config, clock):
    config.interpolation_enabled = True
    scheduler = make_scheduler(config)
    scheduler.run_scheduler()
    assert scheduler._blend_deadline == pytest.approx(clock.mono + 60)

    scheduler.handle_event(SchedulerEvent.TOGGLE_INTERPOLATION)
    assert scheduler._blend_deadline is None


def test_identical_images_need_no_blend_steps(make_scheduler, config, theme):
    single = replace(theme, day_image_list=(3,), sunset_image_list=None)
    scheduler = make_scheduler(replace(config, theme=single, interpolation_enabled=True))
    scheduler.run_scheduler()
    assert scheduler._blend_deadline is None
