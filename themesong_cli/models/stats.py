"""
Dataclass for tracking theme song run statistics.
"""

import time
from dataclasses import dataclass, field

from .candidate import ThemeOutcome


@dataclass
class RunStats:
    """Counters for one batch run over the library."""

    total_series: int = 0
    with_theme: int = 0
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped_existing: int = 0
    not_found: int = 0
    normalized: int = 0
    normalization_skipped: int = 0
    backups_created: int = 0
    cancelled: bool = False
    started_at: float = field(default_factory=time.monotonic, repr=False)

    def record(self, outcome: ThemeOutcome) -> None:
        """Counts one processed candidate by its outcome."""
        self.processed += 1
        if outcome is ThemeOutcome.DOWNLOADED:
            self.succeeded += 1
        elif outcome is ThemeOutcome.SKIPPED_EXISTING:
            self.skipped_existing += 1
        elif outcome is ThemeOutcome.NOT_FOUND:
            self.not_found += 1
        else:
            self.failed += 1

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started_at
