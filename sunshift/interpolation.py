"""Easing curves for cross-fading between wallpapers."""

import math
from enum import Enum
from typing import Callable


class InterpolationMethod(Enum):
    """Easing curve applied to the progress through an image interval."""

    NONE = "none"
    LINEAR = "linear"
    QUAD = "quad"
    CUBIC = "cubic"
    QUART = "quart"
    QUINT = "quint"
    SINE = "sine"
    CIRCLE = "circle"
    EXPONENTIAL = "exponential"

    @classmethod
    def parse(cls, name: str) -> "InterpolationMethod":
        """
        Look up a method by name, case-insensitively.

        Raises:
            ValueError: If the name is unknown
        """
        try:
            return cls(str(name).strip().lower())
        except ValueError:
            choices = ', '.join(m.value for m in cls)
            raise ValueError(f"Unknown interpolation method: {name}. Must be one of: {choices}")


def _quad(value: float) -> float:
    return value ** 2


def _cubic(value: float) -> float:
    return value ** 3


def _quart(value: float) -> float:
    return value ** 4


def _quint(value: float) -> float:
    return value ** 5


def _exponential(value: float) -> float:
    return (math.exp(2 * value) - 1) / (math.exp(2) - 1)


def _sine(value: float) -> float:
    return 1 - math.sin(math.pi / 2 * (1 - value))


def _circle(value: float) -> float:
    return 1 - math.sqrt(1.0 - value * value)


_BASE_CURVES: dict[InterpolationMethod, Callable[[float], float]] = {
    InterpolationMethod.QUAD: _quad,
    InterpolationMethod.CUBIC: _cubic,
    InterpolationMethod.QUART: _quart,
    InterpolationMethod.QUINT: _quint,
    InterpolationMethod.SINE: _sine,
    InterpolationMethod.CIRCLE: _circle,
    InterpolationMethod.EXPONENTIAL: _exponential,
}


def _in_out(value: float, func: Callable[[float], float]) -> float:
    """Mirror an ease-in curve into a symmetric ease-in-out curve."""
    if value >= 0.5:
        return (1 - func((1 - value) * 2)) / 2 + 0.5
    return func(value * 2) / 2


def calculate(value: float, method: InterpolationMethod) -> float:
    """
    Ease a progress value.

    Args:
        value: Progress through the interval, nominally 0.0-1.0
        method: Easing curve

    Returns:
        Eased value in 0.0-1.0 (values outside the range clamp to 0 or 1)
    """
    if value < 0:
        return 0.0
    elif value > 1:
        return 1.0

    if method == InterpolationMethod.LINEAR:
        return float(value)

    func = _BASE_CURVES.get(method)
    if func is None:
        return 0.0
    return _in_out(value, func)
