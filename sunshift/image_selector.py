"""Image selection within a day segment."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sunshift.day_segment import is_sun_up, resolve_segment
from sunshift.sun_calculator import SolarData
from sunshift.ticks import to_ticks


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SchedulerState:
    """Result of one image selection."""

    image_id: Optional[int] = None
    image_number: int = 0
    start_tick: int = 0
    end_tick: int = 0
    day_segment2: int = 0
    day_segment4: int = 0


def divide_segment(start_tick: int, end_tick: int, count: int, current_tick: int) -> tuple[int, int, int]:
    """
    Find the sub-interval of a segment that contains a tick.

    The segment is split into `count` sub-intervals of equal truncated
    length; the remainder ticks belong to the last one.

    Args:
        start_tick: Segment start
        end_tick: Segment end (exclusive)
        count: Number of images in the segment (must be positive)
        current_tick: Tick to locate

    Returns:
        (index, sub_start_tick, sub_end_tick)
    """
    if count <= 0:
        raise ValueError(f"Cannot divide a segment into {count} parts")

    length = (end_tick - start_tick) // count
    if length <= 0:
        return (0, start_tick, end_tick)

    index = (current_tick - start_tick) // length
    index = max(0, min(count - 1, index))

    sub_start = start_tick + length * index
    if index == count - 1:
        sub_end = end_tick
    else:
        sub_end = start_tick + length * (index + 1)

    return (index, sub_start, sub_end)


class ImageSelector:
    """Maps a moment to the theme image that should be displayed."""

    def __init__(self, solar_source):
        """
        Initialize image selector.

        Args:
            solar_source: SunCalculator (or compatible) for adjacent days
        """
        self.solar_source = solar_source

    def get_image_data(
        self,
        data: SolarData,
        theme,
        current: datetime,
        dark_mode: bool = False
    ) -> SchedulerState:
        """
        Select the image for a moment.

        Args:
            data: Solar data for the calendar day of `current`
            theme: ThemeConfig, or None
            current: Moment to evaluate (timezone-aware)
            dark_mode: Force night imagery

        Returns:
            SchedulerState; image_id is None when no image is available
        """
        info = resolve_segment(data, theme, dark_mode, current, self.solar_source)
        day_segment2 = 0 if is_sun_up(data, current) else 1

        if not info.images:
            logger.debug(f"No images for segment {info.segment.value}")
            return SchedulerState(
                day_segment2=day_segment2,
                day_segment4=info.segment.index4,
            )

        index, start_tick, end_tick = divide_segment(
            to_ticks(info.start),
            to_ticks(info.end),
            len(info.images),
            to_ticks(current)
        )

        return SchedulerState(
            image_id=info.images[index],
            image_number=index,
            start_tick=start_tick,
            end_tick=end_tick,
            day_segment2=day_segment2,
            day_segment4=info.segment.index4,
        )
