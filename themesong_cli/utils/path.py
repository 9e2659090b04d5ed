"""
Utilities for handling file paths and staging names.
"""

from pathlib import Path

from pathvalidate import sanitize_filename


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)


def safe_name(name: str | None, fallback: str = "unknown") -> str:
    """Replaces characters that are invalid in file names with underscores."""
    if not name:
        return fallback
    cleaned = sanitize_filename(name, replacement_text="_", platform="universal")
    return cleaned or fallback


def staging_filename(display_name: str, identity: str, ext: str = "mp3") -> str:
    """
    Builds a unique staging file name from a series name and its external id.

    The id keeps two series with the same display name from sharing a file.
    """
    return f"{safe_name(display_name)}_{safe_name(identity)}.{ext}"


def is_bare_command(path: str) -> bool:
    """True when ``path`` is a command name to be looked up on PATH."""
    return "/" not in path and "\\" not in path


def sibling_binary(binary_path: str, name: str) -> str:
    """
    Resolves another executable that ships next to ``binary_path``.

    A bare command such as 'ffmpeg' maps to the bare ``name``; a full path maps
    to ``name`` in the same directory.
    """
    if is_bare_command(binary_path):
        return name
    return str(Path(binary_path).parent / name)
