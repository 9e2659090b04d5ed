"""
Moves processed theme songs into the library without ever losing the old one.
"""

import errno
import logging
import os
import shutil
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from themesong_cli.exceptions import PlacementError
from themesong_cli.models.candidate import PlacementRecord
from themesong_cli.utils.path import create_dir

log = logging.getLogger(__name__)

BACKUP_MARKER = ".backup."
BACKUP_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


def backup_path_for(final_path: Path, now: Optional[datetime] = None) -> Path:
    """
    Returns ``<final>.backup.<yyyyMMddHHmmss>``, adding a counter if that name
    is already taken.
    """
    stamp = (now or datetime.now()).strftime(BACKUP_TIMESTAMP_FORMAT)
    candidate = final_path.with_name(f"{final_path.name}{BACKUP_MARKER}{stamp}")
    counter = 1
    while candidate.exists():
        candidate = final_path.with_name(
            f"{final_path.name}{BACKUP_MARKER}{stamp}.{counter}"
        )
        counter += 1
    return candidate


class FilePlacer:
    """Commits staged files to their final library path."""

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self._clock = clock

    def _move(self, source: Path, destination: Path) -> None:
        try:
            os.replace(source, destination)
        except OSError as e:
            if e.errno != errno.EXDEV:
                raise
            # Staging and library live on different filesystems
            try:
                shutil.move(str(source), str(destination))
            except OSError:
                destination.unlink(missing_ok=True)
                raise

    def commit(self, staged_path: Path, final_path: Path) -> PlacementRecord:
        """
        Moves ``staged_path`` to ``final_path``.

        An existing file at ``final_path`` is first renamed to a timestamped
        backup, so the previous theme survives a crash at any point. If the
        move then fails, the backup is renamed back into place.

        Raises:
            PlacementError: On any filesystem failure.
        """
        if not staged_path.is_file():
            raise PlacementError(f"Staged file '{staged_path}' does not exist")

        backup_path: Optional[Path] = None
        try:
            create_dir(final_path.parent)
            if final_path.exists():
                backup_path = backup_path_for(final_path, self._clock())
                os.rename(final_path, backup_path)
                log.info(f"Backed up existing theme song to '{backup_path.name}'")
            self._move(staged_path, final_path)
        except OSError as e:
            if backup_path is not None:
                self._restore(backup_path, final_path)
            raise PlacementError(
                f"Could not place theme song at '{final_path}': {e}"
            ) from e

        log.debug(f"Placed '{staged_path.name}' at '{final_path}'")
        return PlacementRecord(final_path=final_path, backup_path=backup_path)

    def _restore(self, backup_path: Path, final_path: Path) -> None:
        try:
            os.replace(backup_path, final_path)
            log.info(f"Restored previous theme song from '{backup_path.name}'")
        except OSError as e:
            log.error(
                f"[red]Could not restore '{backup_path.name}' to '{final_path}': {e}[/red]"
            )

    def cleanup(self, *paths: Optional[Path]) -> None:
        """Deletes staging files. Failures are logged and never raised."""
        for path in dict.fromkeys(p for p in paths if p is not None):
            try:
                if path.is_file():
                    path.unlink()
                    log.debug(f"Removed staging file '{path.name}'")
            except OSError as e:
                log.warning(f"[yellow]Error cleaning up staging file '{path}': {e}[/yellow]")

    def remove(self, final_path: Path) -> bool:
        """Deletes a placed theme song. Returns False if there was none."""
        if not final_path.is_file():
            return False
        try:
            final_path.unlink()
        except OSError as e:
            raise PlacementError(f"Could not delete '{final_path}': {e}") from e
        return True
