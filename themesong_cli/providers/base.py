"""
Base class and registration descriptor for theme song providers.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from themesong_cli.models.candidate import Candidate


class ThemeSongProvider(ABC):
    """Resolves a candidate to a direct audio URL."""

    #: Human readable name used in logs.
    name: str = "provider"

    @abstractmethod
    async def resolve(self, candidate: Candidate) -> Optional[str]:
        """
        Returns a direct audio URL for ``candidate`` or None if not found.

        Implementations may raise on transport or parsing errors; the chain
        isolates those.
        """

    async def close(self) -> None:
        """Releases any network resources held by the provider."""


@dataclass(frozen=True)
class ProviderDescriptor:
    """A provider together with the settings it was registered with."""

    provider: ThemeSongProvider
    priority: int
    enabled: bool

    @property
    def name(self) -> str:
        return self.provider.name
