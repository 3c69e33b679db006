"""Suppression of scheduler events while a full-screen window is active."""

import logging
import threading
from typing import Callable, Optional


logger = logging.getLogger(__name__)


class FullScreenGate:
    """
    Defers scheduler events while a full-screen application runs.

    At most one event is remembered; it is replayed once when full screen
    ends.
    """

    def __init__(self, enabled: bool = False, replay: Optional[Callable[[], None]] = None):
        """
        Initialize full-screen gate.

        Args:
            enabled: Whether pausing during full screen is configured
            replay: Called when a deferred event should run
        """
        self.enabled = enabled
        self.replay = replay
        self.running_full_screen = False
        self.timer_event_pending = False
        self._lock = threading.Lock()

    def should_defer(self) -> bool:
        """
        Check the gate for an incoming event.

        Returns:
            True if the event was deferred and must not run now
        """
        with self._lock:
            if self.enabled and self.running_full_screen:
                if not self.timer_event_pending:
                    logger.info("Full-screen application active, deferring wallpaper update")
                self.timer_event_pending = True
                return True
            return False

    def set_running_full_screen(self, running: bool):
        """Record the full-screen state, replaying a deferred event when it ends."""
        with self._lock:
            was_running = self.running_full_screen
            self.running_full_screen = running
            replay_now = was_running and not running and self.timer_event_pending
            if replay_now:
                self.timer_event_pending = False

        if replay_now:
            logger.info("Full-screen application closed, running deferred update")
            if self.replay:
                self.replay()
