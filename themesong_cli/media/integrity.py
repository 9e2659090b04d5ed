"""
Provides methods for checking the integrity of downloaded theme songs.
"""

import logging

from mutagen.mp3 import MP3, HeaderNotFoundError

log = logging.getLogger(__name__)


class FileIntegrityChecker:
    """A collection of static methods for validating audio file integrity."""

    @staticmethod
    def check_mp3(filepath: str) -> bool:
        """
        Performs a basic integrity check on an MP3 file.

        Theme song sites occasionally answer with an HTML error page instead of
        audio, so a download is only trusted once mutagen can read its stream
        info.

        Args:
            filepath: Path to the MP3 file.

        Returns:
            True if the file appears to be a valid MP3 file, False otherwise.
        """
        try:
            audio = MP3(filepath)
            if audio.info and audio.info.length > 0:
                return True
            log.warning(
                f"MP3 integrity check failed for '{filepath}': No valid stream info."
            )
            return False
        except HeaderNotFoundError:
            log.warning(
                f"MP3 integrity check failed for '{filepath}': Missing MP3 header."
            )
            return False
        except Exception as e:
            log.debug(f"MP3 check failed for '{filepath}' with unexpected error: {e}")
            return False

    @staticmethod
    def mp3_duration(filepath: str) -> float:
        """Returns the MP3 stream length in seconds, or 0.0 if unreadable."""
        try:
            return float(MP3(filepath).info.length)
        except Exception as e:
            log.debug(f"Could not read duration of '{filepath}': {e}")
            return 0.0
