"""
Filesystem-backed index of TV series that can receive a theme song.
"""

import logging
import re
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from bs4 import BeautifulSoup
from rich.markup import escape

from themesong_cli.exceptions import LibraryError
from themesong_cli.models.candidate import THEME_FILENAME, Candidate

log = logging.getLogger(__name__)

NFO_FILENAME = "tvshow.nfo"
THEME_MUSIC_DIR = "theme-music"
AUDIO_EXTENSIONS = {".mp3", ".flac", ".m4a", ".aac", ".ogg", ".opus", ".wav", ".wma"}

# Matches folder tags such as "[tvdbid-12345]", "[tvdb-12345]" or "{tvdb-12345}".
TVDB_TAG_RE = re.compile(r"[\[{]\s*tvdb(?:id)?\s*[-=]\s*(?P<id>\d+)\s*[\]}]", re.IGNORECASE)
ANY_TAG_RE = re.compile(r"\s*[\[{][a-z]+(?:id)?\s*[-=][^\]}]*[\]}]", re.IGNORECASE)


def parse_nfo(nfo_path: Path) -> Tuple[Optional[str], Optional[str]]:
    """
    Extracts (title, tvdb_id) from a Kodi/Jellyfin style tvshow.nfo file.

    Both values may be None if the file lacks them or cannot be parsed.
    """
    try:
        text = nfo_path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        log.debug(f"Could not read '{nfo_path}': {e}")
        return None, None

    soup = BeautifulSoup(text, "html.parser")
    root = soup.find("tvshow") or soup

    title = None
    if (title_tag := root.find("title")) and title_tag.get_text(strip=True):
        title = title_tag.get_text(strip=True)

    tvdb_id = None
    if (tvdb_tag := root.find("tvdbid")) and tvdb_tag.get_text(strip=True).isdigit():
        tvdb_id = tvdb_tag.get_text(strip=True)
    else:
        for uid in root.find_all("uniqueid"):
            value = uid.get_text(strip=True)
            if (uid.get("type") or "").lower() == "tvdb" and value.isdigit():
                tvdb_id = value
                break

    return title, tvdb_id


def has_theme(series_dir: Path) -> bool:
    """True if the series folder already carries a theme song."""
    if (series_dir / THEME_FILENAME).is_file():
        return True
    music_dir = series_dir / THEME_MUSIC_DIR
    if music_dir.is_dir():
        return any(
            p.is_file() and p.suffix.lower() in AUDIO_EXTENSIONS
            for p in music_dir.iterdir()
        )
    return False


class FilesystemLibrary:
    """
    Reads series folders from one or more TV library roots.

    Each immediate sub-directory of a root is treated as a series. Only series
    with a TVDb id (folder tag or tvshow.nfo) become candidates.
    """

    def __init__(self, library_paths: Iterable[str | Path]):
        self.library_paths = [Path(p).expanduser() for p in library_paths]

    def _read_series(self, series_dir: Path) -> Optional[Candidate]:
        nfo_title, nfo_tvdb = None, None
        if (series_dir / NFO_FILENAME).is_file():
            nfo_title, nfo_tvdb = parse_nfo(series_dir / NFO_FILENAME)

        tag_match = TVDB_TAG_RE.search(series_dir.name)
        tvdb_id = tag_match.group("id") if tag_match else nfo_tvdb
        if not tvdb_id:
            log.debug(f"Series folder '{escape(series_dir.name)}' has no TVDb id, skipping")
            return None

        name = nfo_title or ANY_TAG_RE.sub("", series_dir.name).strip() or series_dir.name
        return Candidate(
            identity=f"tvdb:{tvdb_id}",
            name=name,
            library_dir=series_dir,
            has_artifact=has_theme(series_dir),
        )

    def list_candidates(self) -> List[Candidate]:
        """
        Returns a fresh snapshot of all series with a TVDb id, sorted by name.

        Raises:
            LibraryError: If no library path is configured or none can be read.
        """
        if not self.library_paths:
            raise LibraryError(
                "No library paths configured. Set 'library_paths' in the config file."
            )

        candidates: List[Candidate] = []
        readable_roots = 0
        for root in self.library_paths:
            if not root.is_dir():
                log.warning(f"[yellow]Library path '{root}' is not a directory.[/yellow]")
                continue
            try:
                entries = sorted(p for p in root.iterdir() if p.is_dir())
            except OSError as e:
                log.warning(f"[yellow]Could not read library path '{root}': {e}[/yellow]")
                continue
            readable_roots += 1
            for series_dir in entries:
                if series_dir.name.startswith("."):
                    continue
                if candidate := self._read_series(series_dir):
                    candidates.append(candidate)

        if not readable_roots:
            raise LibraryError("None of the configured library paths could be read.")

        return sorted(candidates, key=lambda c: (c.name.lower(), c.identity))

    def has_artifact(self, candidate: Candidate) -> bool:
        """Checks the filesystem for an existing theme song."""
        return has_theme(candidate.library_dir)

    def find(self, query: str) -> Candidate:
        """
        Looks up a series by identity ('tvdb:123'), bare TVDb id or name.

        Raises:
            LibraryError: If nothing or more than one series matches by name.
        """
        query = query.strip()
        candidates = self.list_candidates()
        for c in candidates:
            if c.identity == query or c.external_id("tvdb") == query:
                return c

        by_name = [c for c in candidates if c.name.lower() == query.lower()]
        if len(by_name) == 1:
            return by_name[0]
        if len(by_name) > 1:
            ids = ", ".join(c.identity for c in by_name)
            raise LibraryError(f"Several series are named '{query}' ({ids}); use an id.")
        raise LibraryError(f"Series '{query}' not found in the library.")
