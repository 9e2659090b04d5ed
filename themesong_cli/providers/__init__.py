"""
Theme Song Provider Layer.

This package turns a library series into a direct audio URL by asking each
enabled provider in priority order.
"""

from .base import ProviderDescriptor, ThemeSongProvider
from .chain import ProviderChain
from .client import ProviderClient
from .plex import PlexThemeProvider
from .registry import build_provider_registry
from .television_tunes import TelevisionTunesProvider

__all__ = [
    "PlexThemeProvider",
    "ProviderChain",
    "ProviderClient",
    "ProviderDescriptor",
    "TelevisionTunesProvider",
    "ThemeSongProvider",
    "build_provider_registry",
]
