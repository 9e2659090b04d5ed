"""
Data Models Layer.

This package contains the configuration model, the immutable values passed
between pipeline stages, and run statistics.
"""

from .candidate import (
    THEME_FILENAME,
    Candidate,
    NormalizationDecision,
    NormalizationPlan,
    PlacementRecord,
    StagedFile,
    ThemeOutcome,
    VolumeReading,
)
from .config import ThemeSongConfig
from .stats import RunStats

__all__ = [
    "THEME_FILENAME",
    "Candidate",
    "NormalizationDecision",
    "NormalizationPlan",
    "PlacementRecord",
    "RunStats",
    "StagedFile",
    "ThemeOutcome",
    "ThemeSongConfig",
    "VolumeReading",
]
