"""
Tries enabled providers in priority order until one yields a theme song URL.
"""

import asyncio
import logging
from typing import Iterable, List, Optional

from rich.markup import escape

from themesong_cli.models.candidate import Candidate

from .base import ProviderDescriptor

log = logging.getLogger(__name__)


class ProviderChain:
    """Ordered, failure-isolating lookup across all registered providers."""

    def __init__(self, descriptors: Iterable[ProviderDescriptor]):
        self.descriptors: List[ProviderDescriptor] = list(descriptors)

    def ordered(self) -> List[ProviderDescriptor]:
        """Enabled providers sorted by ascending priority (ties keep registration order)."""
        enabled = []
        for d in self.descriptors:
            if d.enabled:
                log.debug(f"Provider {d.name} is enabled (priority {d.priority})")
                enabled.append(d)
            else:
                log.debug(f"Provider {d.name} is disabled in configuration")
        return sorted(enabled, key=lambda d: d.priority)

    async def resolve(
        self, candidate: Candidate, cancel: Optional[asyncio.Event] = None
    ) -> Optional[str]:
        """
        Returns the first URL any enabled provider finds for ``candidate``.

        A provider that raises or finds nothing is logged and skipped. Returns
        None when every provider is exhausted or none is enabled. ``cancel`` does
        not interrupt a lookup in progress; the batch checks it between series.
        """
        name = escape(candidate.name)
        providers = self.ordered()
        if not providers:
            log.warning("[yellow]No theme song providers are enabled in configuration.[/yellow]")
            return None

        for descriptor in providers:
            try:
                log.debug(
                    f"Trying provider {descriptor.name} (priority {descriptor.priority})"
                    f" for '{name}'"
                )
                url = await descriptor.provider.resolve(candidate)
            except Exception as e:
                log.warning(
                    f"[yellow]Provider {descriptor.name} failed for '{name}': {e}[/yellow]",
                    exc_info=log.getEffectiveLevel() == logging.DEBUG,
                )
                continue

            if url:
                log.info(
                    f"Found theme song for [bold]{name}[/bold] "
                    f"using provider {descriptor.name}"
                )
                return url
            log.debug(f"Provider {descriptor.name} found nothing for '{name}'")

        return None

    async def close(self) -> None:
        """Closes every registered provider."""
        for d in self.descriptors:
            try:
                await d.provider.close()
            except Exception as e:
                log.debug(f"Error closing provider {d.name}: {e}")
