"""
The main orchestrator for running theme song downloads across the library.
"""

import asyncio
import dataclasses
import logging
from typing import List, Optional, Protocol

from rich.markup import escape

from themesong_cli.media import Downloader, FilePlacer, NormalizationPipeline
from themesong_cli.models.candidate import Candidate, ThemeOutcome
from themesong_cli.models.config import ThemeSongConfig
from themesong_cli.models.stats import RunStats
from themesong_cli.providers import ProviderChain, build_provider_registry
from themesong_cli.storage.library import FilesystemLibrary

from .theme_processor import ThemeProcessor

log = logging.getLogger(__name__)


class LibraryIndex(Protocol):
    def list_candidates(self) -> List[Candidate]: ...

    def has_artifact(self, candidate: Candidate) -> bool: ...


class ThemeSongManager:
    """Orchestrates theme song runs over every series in the library."""

    def __init__(
        self,
        config: ThemeSongConfig,
        library: LibraryIndex,
        processor: ThemeProcessor,
    ):
        self.config = config
        self.library = library
        self.processor = processor

    @classmethod
    def from_config(cls, config: ThemeSongConfig) -> "ThemeSongManager":
        """Wires the real library, providers, downloader and ffmpeg pipeline."""
        processor = ThemeProcessor(
            config,
            ProviderChain(build_provider_registry(config)),
            Downloader(max_attempts=config.download_attempts),
            NormalizationPipeline(),
            FilePlacer(),
        )
        return cls(config, FilesystemLibrary(config.library_paths), processor)

    async def close(self) -> None:
        """Releases provider and downloader network sessions."""
        await self.processor.chain.close()
        close = getattr(self.processor.downloader, "close", None)
        if close is not None:
            await close()

    async def __aenter__(self) -> "ThemeSongManager":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def run_all(
        self, force: bool = False, cancel: Optional[asyncio.Event] = None
    ) -> RunStats:
        """
        Processes every series lacking a theme song (or every series with
        ``force``), one at a time.

        A failure for one series is logged and counted; it never stops the
        batch. Cancellation is checked between series and ends the run early
        with the counts so far.
        """
        stats = RunStats()
        log.info(f"Starting theme song download for all series (force: {force})")

        candidates = [
            dataclasses.replace(c, has_artifact=self.library.has_artifact(c))
            for c in self.library.list_candidates()
        ]
        with_theme = [c for c in candidates if c.has_artifact]
        without_theme = [c for c in candidates if not c.has_artifact]
        stats.total_series = len(candidates)
        stats.with_theme = len(with_theme)

        log.info(
            f"Library: {len(candidates)} series, {len(with_theme)} with themes, "
            f"{len(without_theme)} without"
        )

        queue = candidates if force else without_theme
        log.info(f"Processing {len(queue)} series for theme song downloads")

        for candidate in queue:
            if cancel is not None and cancel.is_set():
                stats.cancelled = True
                log.info(
                    f"[yellow]Theme song download cancelled after processing "
                    f"{stats.processed} series[/yellow]"
                )
                break

            try:
                outcome = await self.processor.process(candidate, force, cancel, stats)
            except Exception as e:
                log.error(
                    f"[red]✗ Unexpected error for {escape(candidate.name)}: {e}[/red]",
                    exc_info=log.getEffectiveLevel() == logging.DEBUG,
                )
                outcome = ThemeOutcome.ERROR
            stats.record(outcome)

        log.info(
            f"Theme song download completed. Processed {stats.processed} series, "
            f"{stats.succeeded} successful downloads"
        )
        return stats

    async def process_one(
        self,
        candidate: Candidate,
        force: bool = False,
        cancel: Optional[asyncio.Event] = None,
    ) -> ThemeOutcome:
        """Processes a single series and reports why it did or did not succeed."""
        try:
            return await self.processor.process(candidate, force, cancel)
        except Exception as e:
            log.error(
                f"[red]✗ Error processing theme song for {escape(candidate.name)}: {e}[/red]",
                exc_info=log.getEffectiveLevel() == logging.DEBUG,
            )
            return ThemeOutcome.ERROR

    async def run_one(
        self,
        candidate: Candidate,
        force: bool = False,
        cancel: Optional[asyncio.Event] = None,
    ) -> bool:
        """True if a theme song was downloaded and placed for ``candidate``."""
        return (await self.process_one(candidate, force, cancel)).is_success
