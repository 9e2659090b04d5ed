"""
Immutable value types passed between the pipeline stages.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

THEME_FILENAME = "theme.mp3"


@dataclass(frozen=True)
class Candidate:
    """
    A library series eligible for a theme song.

    The identity is an opaque external id such as ``tvdb:123``; providers pick
    out the scheme they understand with :meth:`external_id`.
    """

    identity: str
    name: str
    library_dir: Path
    has_artifact: bool = False

    @property
    def theme_path(self) -> Path:
        return self.library_dir / THEME_FILENAME

    def external_id(self, scheme: str) -> Optional[str]:
        """Returns the id value for ``scheme`` (e.g. 'tvdb'), or None."""
        prefix = f"{scheme}:"
        if self.identity.startswith(prefix):
            value = self.identity[len(prefix) :].strip()
            return value or None
        return None


@dataclass(frozen=True)
class StagedFile:
    """A downloaded file owned by one in-flight processing attempt."""

    path: Path
    candidate: Candidate


@dataclass(frozen=True)
class VolumeReading:
    """A loudest-peak reading parsed from ffmpeg's volumedetect output."""

    db: float
    raw: str


class NormalizationDecision(Enum):
    SKIP = "skip"
    APPLY = "apply"


@dataclass(frozen=True)
class NormalizationPlan:
    """Everything needed to decide on and run one normalization pass."""

    target_db: float
    detected_db: float
    fade_in: float
    fade_out: float
    duration: float
    decision: NormalizationDecision

    @property
    def fade_out_start(self) -> float:
        return max(0.0, self.duration - self.fade_out)


@dataclass(frozen=True)
class PlacementRecord:
    """Result of committing a file into the library."""

    final_path: Path
    backup_path: Optional[Path] = None


class ThemeOutcome(Enum):
    """Reason category for the result of processing one candidate."""

    DOWNLOADED = "downloaded"
    SKIPPED_EXISTING = "skipped_existing"
    NOT_FOUND = "not_found"
    DOWNLOAD_FAILED = "download_failed"
    NORMALIZATION_FAILED = "normalization_failed"
    PLACEMENT_FAILED = "placement_failed"
    ERROR = "error"

    @property
    def is_success(self) -> bool:
        return self is ThemeOutcome.DOWNLOADED
