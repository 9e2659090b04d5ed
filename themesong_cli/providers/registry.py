"""
Builds the provider descriptors from configuration.
"""

from typing import Dict, List, Type

from themesong_cli.models.config import ThemeSongConfig

from .base import ProviderDescriptor, ThemeSongProvider
from .plex import PlexThemeProvider
from .television_tunes import TelevisionTunesProvider

# Config key prefix -> provider class. Every entry needs matching
# 'enable_<key>_provider' and '<key>_provider_priority' config fields.
PROVIDER_CLASSES: Dict[str, Type[ThemeSongProvider]] = {
    "plex": PlexThemeProvider,
    "television_tunes": TelevisionTunesProvider,
}


def build_provider_registry(config: ThemeSongConfig) -> List[ProviderDescriptor]:
    """Creates one descriptor per known provider, carrying its enabled flag and priority."""
    return [
        ProviderDescriptor(
            provider=provider_cls(),
            priority=config.provider_priority(key),
            enabled=config.provider_enabled(key),
        )
        for key, provider_cls in PROVIDER_CLASSES.items()
    ]
