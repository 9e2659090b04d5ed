"""
Media Processing Layer.

This package is responsible for all audio file operations: downloading,
integrity validation, ffmpeg normalization and placement into the library.
"""

from .command_runner import CommandResult, CommandRunner
from .downloader import Downloader
from .integrity import FileIntegrityChecker
from .normalizer import NormalizationPipeline
from .placer import FilePlacer

__all__ = [
    "CommandResult",
    "CommandRunner",
    "Downloader",
    "FileIntegrityChecker",
    "FilePlacer",
    "NormalizationPipeline",
]
