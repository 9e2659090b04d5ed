"""
Theme songs from the Plex TV theme mirror, keyed by TVDb id.
"""

import logging
from typing import Optional

from themesong_cli.models.candidate import Candidate

from .base import ThemeSongProvider
from .client import ProviderClient

log = logging.getLogger(__name__)


class PlexThemeProvider(ThemeSongProvider):
    """Looks up ``<tvdb id>.mp3`` on tvthemes.plexapp.com."""

    name = "Plex"
    BASE_URL = "https://tvthemes.plexapp.com/"

    def __init__(self, client: Optional[ProviderClient] = None):
        self.client = client or ProviderClient(self.name, calls_per_second=4.0)

    def theme_url(self, tvdb_id: str) -> str:
        return f"{self.BASE_URL}{tvdb_id}.mp3"

    async def resolve(self, candidate: Candidate) -> Optional[str]:
        tvdb_id = candidate.external_id("tvdb")
        if not tvdb_id:
            log.debug(f"Plex: '{candidate.name}' has no TVDb id")
            return None

        url = self.theme_url(tvdb_id)
        if await self.client.exists(url):
            return url
        return None

    async def close(self) -> None:
        await self.client.close()
