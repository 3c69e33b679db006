"""Wallpaper management via hyprpaper IPC."""

import json
import logging
import subprocess
import time
from pathlib import Path
from typing import Optional, Set


logger = logging.getLogger(__name__)


class WallpaperManager:
    """Applies wallpapers through hyprpaper IPC."""

    def __init__(self, monitor: str = ""):
        """
        Initialize wallpaper manager.

        Args:
            monitor: Monitor name (empty string = all monitors)
        """
        self.monitor = monitor
        self.current_wallpaper: Optional[Path] = None
        self.preloaded: Set[Path] = set()

    def _run_command(self, cmd: list[str]) -> Optional[str]:
        """
        Execute hyprctl command.

        Args:
            cmd: Command as list of strings

        Returns:
            Command stdout if successful, None otherwise
        """
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=True,
                timeout=5
            )
            return result.stdout
        except subprocess.CalledProcessError as e:
            error_msg = (e.stderr + e.stdout).lower() if e.stderr or e.stdout else ""

            if 'disabled' in error_msg or ('ipc' in error_msg and 'off' in error_msg):
                logger.error(
                    "Hyprpaper IPC appears to be disabled.\n"
                    "To enable IPC:\n"
                    "  1. Edit ~/.config/hypr/hyprpaper.conf\n"
                    "  2. Change 'ipc = off' to 'ipc = on'\n"
                    "  3. Restart hyprpaper: systemctl --user restart hyprpaper.service"
                )
            # preload/unload are not supported by every hyprpaper release
            elif 'unknown' in error_msg and 'request' in error_msg:
                logger.debug(f"Command not supported (ignored): {cmd[2] if len(cmd) > 2 else 'unknown'}")
            else:
                logger.error(f"Command failed: {' '.join(cmd)}\n{e.stderr or e.stdout}")
            return None
        except subprocess.TimeoutExpired:
            logger.error(f"Command timed out: {' '.join(cmd)}")
            return None
        except FileNotFoundError:
            logger.error(f"Command not found: {cmd[0]}")
            return None

    def check_hyprpaper_running(self) -> bool:
        """Check if hyprpaper is running."""
        try:
            result = subprocess.run(
                ['pgrep', '-x', 'hyprpaper'],
                capture_output=True,
                timeout=2
            )
            return result.returncode == 0
        except (subprocess.TimeoutExpired, FileNotFoundError):
            return False

    def wait_for_hyprpaper(self, max_wait: int = 30) -> bool:
        """
        Wait for hyprpaper to be ready.

        Args:
            max_wait: Maximum seconds to wait

        Returns:
            True if hyprpaper is ready, False if timeout
        """
        logger.info("Waiting for hyprpaper to be ready...")
        for _ in range(max_wait):
            if self.check_hyprpaper_running():
                logger.info("Hyprpaper is ready")
                return True
            time.sleep(1)

        logger.error(f"Hyprpaper not ready after {max_wait} seconds")
        return False

    def is_fullscreen_active(self) -> bool:
        """Whether the focused Hyprland window is full screen."""
        output = self._run_command(['hyprctl', 'activewindow', '-j'])
        if not output:
            return False

        try:
            window = json.loads(output)
        except json.JSONDecodeError as e:
            logger.debug(f"Unexpected activewindow output: {e}")
            return False

        if not isinstance(window, dict):
            return False
        return bool(window.get('fullscreen'))

    def preload(self, path: Path) -> bool:
        """
        Preload wallpaper into memory (optional in recent hyprpaper).

        Returns:
            True if successful, False otherwise (non-fatal)
        """
        if path in self.preloaded:
            return True

        if self._run_command(['hyprctl', 'hyprpaper', 'preload', str(path)]) is None:
            logger.debug(f"Preload not supported or failed: {path.name} (non-fatal)")
            return False

        self.preloaded.add(path)
        return True

    def unload(self, path: Path) -> bool:
        """Unload wallpaper from memory."""
        if path not in self.preloaded:
            return True

        logger.debug(f"Unloading wallpaper: {path.name}")
        if self._run_command(['hyprctl', 'hyprpaper', 'unload', str(path)]) is None:
            return False

        self.preloaded.discard(path)
        return True

    def set_wallpaper(self, path: Path) -> bool:
        """
        Set wallpaper for monitor.

        The previously shown file is unloaded afterwards so a cross-fade does
        not keep every intermediate blend in memory.

        Args:
            path: Path to wallpaper file

        Returns:
            True if successful, False otherwise
        """
        if not path.exists():
            logger.error(f"Wallpaper file not found: {path}")
            return False

        self.preload(path)

        previous = self.current_wallpaper
        wallpaper_arg = f"{self.monitor},{path}"

        if self._run_command(['hyprctl', 'hyprpaper', 'wallpaper', wallpaper_arg]) is None:
            logger.error(f"Failed to set wallpaper: {path.name}")
            return False

        self.current_wallpaper = path
        logger.info(f"Wallpaper changed to: {path.name}")

        if previous is not None and previous != path:
            self.unload(previous)

        return True
