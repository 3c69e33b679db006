"""Theme definitions: ordered image lists per day segment."""

import json
import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

from sunshift.day_segment import DaySegment
from sunshift.interpolation import InterpolationMethod


logger = logging.getLogger(__name__)

THEME_FILE = "theme.json"

# theme.json key -> ThemeConfig field
_LIST_KEYS = {
    'sunriseImageList': 'sunrise_image_list',
    'dayImageList': 'day_image_list',
    'sunsetImageList': 'sunset_image_list',
    'nightImageList': 'night_image_list',
}


def _as_image_list(value, name: str) -> Optional[tuple]:
    """Normalize a configured image list to a tuple of ints (None if absent)."""
    if value is None:
        return None
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"Image list '{name}' must be a list of image ids, got: {value!r}")

    images = []
    for item in value:
        if isinstance(item, bool) or not isinstance(item, int):
            raise ValueError(f"Image list '{name}' contains a non-integer id: {item!r}")
        images.append(item)
    return tuple(images)


@dataclass(frozen=True)
class ThemeConfig:
    """A dynamic wallpaper theme."""

    theme_id: str
    directory: Path
    image_filename: str
    sunrise_image_list: Optional[tuple] = None
    day_image_list: Optional[tuple] = None
    sunset_image_list: Optional[tuple] = None
    night_image_list: Optional[tuple] = None
    interpolation: InterpolationMethod = InterpolationMethod.LINEAR

    def image_list(self, segment: DaySegment) -> Optional[tuple]:
        """
        Get the image list shown during a day segment.

        Sunrise and sunset fall back to the day list. An empty list counts as
        missing.

        Returns:
            Tuple of image ids, or None if the theme has no images for it
        """
        if segment == DaySegment.SUNRISE:
            images = self.sunrise_image_list or self.day_image_list
        elif segment == DaySegment.SUNSET:
            images = self.sunset_image_list or self.day_image_list
        elif segment in (DaySegment.DAY, DaySegment.ALL_DAY):
            images = self.day_image_list
        else:
            images = self.night_image_list

        return images or None

    def image_path(self, image_id: int) -> Path:
        """Path of the image file for an image id."""
        return self.directory / self.image_filename.replace("*", str(image_id))

    def drop_missing_images(self) -> "ThemeConfig":
        """
        Return a copy where lists referencing missing files are None.

        A partially downloaded theme keeps working for the segments whose
        images are all present.
        """
        changes = {}
        for field_name in _LIST_KEYS.values():
            images = getattr(self, field_name)
            if not images:
                continue
            missing = [i for i in images if not self.image_path(i).is_file()]
            if missing:
                logger.warning(
                    f"Theme '{self.theme_id}' is missing images {missing} "
                    f"for {field_name}, segment disabled"
                )
                changes[field_name] = None

        return replace(self, **changes) if changes else self

    @classmethod
    def from_dict(cls, data: dict, base_dir: Optional[Path] = None) -> "ThemeConfig":
        """
        Build a theme from a config mapping.

        Accepts the YAML keys (directory, image_filename, sunrise, day, sunset,
        night, interpolation). If the directory holds a theme.json, it supplies
        any value the mapping leaves out.

        Raises:
            ValueError: If the theme definition is invalid
        """
        directory_str = data.get('directory')
        if not directory_str:
            raise ValueError("Theme requires a 'directory'")
        directory = Path(os.path.expanduser(os.path.expandvars(str(directory_str))))
        if base_dir is not None and not directory.is_absolute():
            directory = base_dir / directory

        file_values = cls._read_theme_file(directory / THEME_FILE)

        image_filename = data.get('image_filename', file_values.get('image_filename'))
        if not image_filename:
            raise ValueError("Theme requires 'image_filename' (e.g. 'image_*.jpg')")
        if '*' not in image_filename:
            raise ValueError(f"Theme image_filename must contain '*': {image_filename}")

        lists = {}
        for short, field_name in (
            ('sunrise', 'sunrise_image_list'),
            ('day', 'day_image_list'),
            ('sunset', 'sunset_image_list'),
            ('night', 'night_image_list'),
        ):
            value = data.get(short, file_values.get(field_name))
            lists[field_name] = _as_image_list(value, short)

        if not lists['day_image_list'] and not lists['night_image_list']:
            raise ValueError("Theme requires at least a 'day' or 'night' image list")

        method_name = data.get('interpolation', file_values.get('interpolation', 'linear'))

        return cls(
            theme_id=str(data.get('id', directory.name)),
            directory=directory,
            image_filename=image_filename,
            interpolation=InterpolationMethod.parse(method_name),
            **lists
        )

    @staticmethod
    def _read_theme_file(path: Path) -> dict:
        """Read a theme.json and map its keys to ThemeConfig field names."""
        if not path.exists():
            return {}

        try:
            with open(path, 'r') as f:
                raw = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            raise ValueError(f"Failed to read theme file {path}: {e}")

        values = {}
        if 'imageFilename' in raw:
            values['image_filename'] = raw['imageFilename']
        if 'interpolation' in raw:
            values['interpolation'] = raw['interpolation']
        for key, field_name in _LIST_KEYS.items():
            if key in raw:
                values[field_name] = raw[key]

        logger.debug(f"Loaded theme file: {path}")
        return values
