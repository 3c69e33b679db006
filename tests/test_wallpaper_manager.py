import subprocess
from unittest.mock import MagicMock, patch

import pytest

from sunshift.wallpaper_manager import WallpaperManager


def completed(stdout=""):
    return MagicMock(stdout=stdout, returncode=0)


@pytest.fixture
def wallpapers(tmp_path):
    first = tmp_path / "img_1.jpg"
    second = tmp_path / "img_2.jpg"
    first.write_bytes(b"jpg")
    second.write_bytes(b"jpg")
    return first, second


def commands(run):
    return [c.args[0][2:] for c in run.call_args_list]


def test_set_wallpaper_preloads_and_sets(wallpapers):
    first, _ = wallpapers
    manager = WallpaperManager("DP-1")

    with patch('sunshift.wallpaper_manager.subprocess.run', return_value=completed()) as run:
        assert manager.set_wallpaper(first)

    assert commands(run) == [
        ['preload', str(first)],
        ['wallpaper', f"DP-1,{first}"],
    ]
    assert manager.current_wallpaper == first


def test_previous_wallpaper_is_unloaded(wallpapers):
    first, second = wallpapers
    manager = WallpaperManager()

    with patch('sunshift.wallpaper_manager.subprocess.run', return_value=completed()) as run:
        manager.set_wallpaper(first)
        manager.set_wallpaper(second)

    assert commands(run)[-1] == ['unload', str(first)]
    assert manager.preloaded == {second}


def test_missing_file_is_not_applied(tmp_path):
    manager = WallpaperManager()
    with patch('sunshift.wallpaper_manager.subprocess.run') as run:
        assert not manager.set_wallpaper(tmp_path / "missing.jpg")
    run.assert_not_called()


def test_failed_command_keeps_current(wallpapers):
    first, _ = wallpapers
    manager = WallpaperManager()
    error = subprocess.CalledProcessError(1, 'hyprctl', output="", stderr="no such monitor")

    with patch('sunshift.wallpaper_manager.subprocess.run', side_effect=error):
        assert not manager.set_wallpaper(first)
    assert manager.current_wallpaper is None


def test_missing_hyprctl(wallpapers):
    first, _ = wallpapers
    with patch('sunshift.wallpaper_manager.subprocess.run', side_effect=FileNotFoundError):
        assert not WallpaperManager().set_wallpaper(first)


@pytest.mark.parametrize("stdout, expected", [
    ('{"class": "mpv", "fullscreen": 2}', True),
    ('{"class": "kitty", "fullscreen": 0}', False),
    ('{}', False),
    ('Invalid', False),
    ('', False),
])
def test_fullscreen_detection(stdout, expected):
    with patch('sunshift.wallpaper_manager.subprocess.run', return_value=completed(stdout)):
        assert WallpaperManager().is_fullscreen_active() is expected


def test_wait_for_hyprpaper_gives_up():
    manager = WallpaperManager()
    with patch.object(manager, 'check_hyprpaper_running', return_value=False), \
            patch('sunshift.wallpaper_manager.time.sleep') as sleep:
        assert not manager.wait_for_hyprpaper(max_wait=3)
    assert sleep.call_count == 3
