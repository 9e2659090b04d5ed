"""
Handles the processing of a single series, from provider lookup to placement.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Protocol

from rich.markup import escape

from themesong_cli.exceptions import PlacementError, TranscoderError
from themesong_cli.media.normalizer import NormalizationPipeline, normalized_output_path
from themesong_cli.media.placer import FilePlacer
from themesong_cli.models.candidate import Candidate, StagedFile, ThemeOutcome
from themesong_cli.models.config import ThemeSongConfig
from themesong_cli.models.stats import RunStats
from themesong_cli.providers.chain import ProviderChain
from themesong_cli.utils.path import create_dir, staging_filename

log = logging.getLogger(__name__)


class Fetcher(Protocol):
    async def fetch(
        self, url: str, destination_path: str, cancel: Optional[asyncio.Event] = None
    ) -> bool: ...


class ThemeProcessor:
    """
    Orchestrates the lookup, download, normalization and placement of one
    theme song. Staging files never outlive the attempt.
    """

    def __init__(
        self,
        config: ThemeSongConfig,
        chain: ProviderChain,
        downloader: Fetcher,
        normalizer: NormalizationPipeline,
        placer: FilePlacer,
    ):
        self.config = config
        self.chain = chain
        self.downloader = downloader
        self.normalizer = normalizer
        self.placer = placer

    def staging_path(self, candidate: Candidate) -> Path:
        return self.config.staging_dir / staging_filename(candidate.name, candidate.identity)

    async def process(
        self,
        candidate: Candidate,
        force: bool = False,
        cancel: Optional[asyncio.Event] = None,
        stats: Optional[RunStats] = None,
    ) -> ThemeOutcome:
        """
        Manages the complete lifecycle of fetching and placing a theme song.

        Returns the outcome category; only unexpected errors are raised.
        """
        name = escape(candidate.name)
        if candidate.has_artifact and not force:
            log.debug(f"Series {name} already has a theme song, skipping")
            return ThemeOutcome.SKIPPED_EXISTING

        log.info(f"[bold cyan]▶[/] Processing theme song for [bold]{name}[/bold]")

        url = await self.chain.resolve(candidate, cancel)
        if not url:
            log.info(f"  [yellow]○ No theme song found for {name}[/yellow]")
            return ThemeOutcome.NOT_FOUND

        create_dir(self.config.staging_dir)
        staged = StagedFile(path=self.staging_path(candidate), candidate=candidate)
        final_path = candidate.theme_path
        try:
            log.debug(f"Downloading {url} to '{staged.path}'")
            if not await self.downloader.fetch(url, str(staged.path), cancel):
                log.error(f"  [red]✗ Failed to download theme song for {name}[/red]")
                return ThemeOutcome.DOWNLOAD_FAILED

            try:
                processed_path = await self.normalizer.normalize(staged.path, self.config)
            except (TranscoderError, OSError) as e:
                log.error(
                    f"  [red]✗ Audio normalization failed for {name}: {e}[/red]",
                    exc_info=log.getEffectiveLevel() == logging.DEBUG,
                )
                return ThemeOutcome.NORMALIZATION_FAILED

            if stats is not None:
                if processed_path != staged.path:
                    stats.normalized += 1
                elif self.config.normalize_audio:
                    stats.normalization_skipped += 1

            try:
                record = self.placer.commit(processed_path, final_path)
            except PlacementError as e:
                log.error(f"  [red]✗ Could not place theme song for {name}: {e}[/red]")
                return ThemeOutcome.PLACEMENT_FAILED

            if stats is not None and record.backup_path is not None:
                stats.backups_created += 1

            log.info(
                f"  [green]✓ Saved theme song for {name}[/green] "
                f"[dim]{escape(str(record.final_path))}[/dim]"
            )
            return ThemeOutcome.DOWNLOADED
        finally:
            self.placer.cleanup(staged.path, normalized_output_path(staged.path))
