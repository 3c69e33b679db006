"""Transition tracking for gradual wallpaper changes."""

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from sunshift.interpolation import InterpolationMethod, calculate


logger = logging.getLogger(__name__)

DEFAULT_BLEND_THRESHOLD = 0.01


@dataclass
class InterpolationState:
    """The image pair being blended over one image interval."""

    image_id1: Optional[int] = None
    image_id2: Optional[int] = None
    start_tick: int = 0
    end_tick: int = 0
    last_percent: float = -1.0
    generation: int = 0


@dataclass(frozen=True)
class BlendStep:
    """What to display after one interpolation update."""

    image_id1: int
    image_id2: int
    percent: float
    generation: int

    @property
    def discrete_image(self) -> Optional[int]:
        """The single image to show, or None if a composite is needed."""
        if self.image_id1 == self.image_id2 or self.percent == 0:
            return self.image_id1
        elif self.percent == 1:
            return self.image_id2
        return None


class TransitionTracker:
    """Tracks the current interpolation interval and decides blend steps."""

    def __init__(self, threshold: float = DEFAULT_BLEND_THRESHOLD):
        """
        Initialize transition tracker.

        Args:
            threshold: Minimum eased progress between two rendered blends
        """
        self.threshold = threshold
        self.state = InterpolationState()
        # Shared by the scheduler loop and the blend worker; also serializes
        # wallpaper applies.
        self.lock = threading.RLock()

    @property
    def generation(self) -> int:
        with self.lock:
            return self.state.generation

    def reset(self, image_id1: int, image_id2: int, start_tick: int, end_tick: int):
        """
        Start a new interpolation interval.

        Args:
            image_id1: Image shown at the start of the interval
            image_id2: Image shown once the interval ends
            start_tick: Interval start
            end_tick: Interval end
        """
        with self.lock:
            self.state = InterpolationState(
                image_id1=image_id1,
                image_id2=image_id2,
                start_tick=start_tick,
                end_tick=end_tick,
                last_percent=-1.0,
                generation=self.state.generation + 1,
            )
            logger.debug(
                f"Interpolation reset: {image_id1} -> {image_id2} "
                f"(generation {self.state.generation})"
            )

    def clear(self):
        """Forget the current pair so no further blend steps are produced."""
        with self.lock:
            self.state = InterpolationState(generation=self.state.generation + 1)
            logger.debug(f"Interpolation cleared (generation {self.state.generation})")

    def step_interval_ticks(self) -> Optional[int]:
        """
        Ticks of linear progress that make up one threshold.

        Returns:
            Interval length, or None while no two different images are blended
        """
        with self.lock:
            state = self.state
            if state.image_id1 is None or state.image_id2 is None:
                return None
            if state.image_id1 == state.image_id2:
                return None
            return int((state.end_tick - state.start_tick) * self.threshold)

    def get_percent(self, now_tick: int, method: InterpolationMethod) -> float:
        """Eased progress through the current interval."""
        with self.lock:
            total = self.state.end_tick - self.state.start_tick
            if total <= 0:
                return 1.0
            current = now_tick - self.state.start_tick
            return calculate(current / total, method)

    def step(self, now_tick: int, method: InterpolationMethod) -> Optional[BlendStep]:
        """
        Decide what to render at `now_tick`.

        Returns:
            BlendStep to render, or None if the change since the last render
            is too small (or nothing has been reset yet)
        """
        with self.lock:
            state = self.state
            if state.image_id1 is None or state.image_id2 is None:
                return None

            if state.image_id1 == state.image_id2:
                logger.debug(f"Interpolation: {state.image_id1} == {state.image_id2}")
                return BlendStep(state.image_id1, state.image_id2, 0.0, state.generation)

            percent = self.get_percent(now_tick, method)

            if percent - state.last_percent < self.threshold:
                logger.debug(
                    f"Interpolation: {percent:.4f} {state.image_id1} -> "
                    f"{state.image_id2} (not enough change)"
                )
                return None

            logger.debug(f"Interpolation: {percent:.4f} {state.image_id1} -> {state.image_id2}")
            state.last_percent = percent
            return BlendStep(state.image_id1, state.image_id2, percent, state.generation)
