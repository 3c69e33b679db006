"""Sunshift - solar-based dynamic wallpaper scheduler for hyprpaper."""

__version__ = "0.1.0"
