"""
Core application engine for orchestrating theme song runs.

The `ThemeSongManager` walks the library and applies the skip/force policy,
delegating each individual series to the `ThemeProcessor`.
"""

from .theme_manager import ThemeSongManager
from .theme_processor import ThemeProcessor

__all__ = ["ThemeProcessor", "ThemeSongManager"]
