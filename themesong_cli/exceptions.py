"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class ThemeSongError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(ThemeSongError):
    """Raised for issues related to configuration loading or validation."""


class LibraryError(ThemeSongError):
    """Raised when a library root cannot be read or a series cannot be found."""


class ProviderError(ThemeSongError):
    """Raised by a provider when a lookup fails for reasons other than 'not found'."""


class DownloadError(ThemeSongError):
    """Raised when a theme song cannot be fetched to the staging directory."""


class TranscoderError(ThemeSongError):
    """Base class for failures of the external transcoder."""


class TranscoderExecutionError(TranscoderError):
    """Raised when ffmpeg exits with a non-zero status."""

    def __init__(self, message: str, exit_code: int | None = None, stderr: str = ""):
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr


class VolumeDetectionError(TranscoderError):
    """Raised when no volume reading can be parsed from the detection pass."""


class PlacementError(ThemeSongError):
    """Raised when a processed file cannot be committed to the library."""
