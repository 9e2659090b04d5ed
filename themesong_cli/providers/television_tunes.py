"""
Theme songs scraped from televisiontunes.com, matched by series name.
"""

import logging
import re
from difflib import SequenceMatcher
from typing import List, Optional, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from themesong_cli.models.candidate import Candidate

from .base import ThemeSongProvider
from .client import ProviderClient

log = logging.getLogger(__name__)

# Titles on the site look like "Friends - Theme Song" or "Friends (Opening)".
TITLE_NOISE_RE = re.compile(
    r"\s*(?:-|\(|\[)\s*(?:theme(?: song)?|opening|intro|full|tv version)\b.*$",
    re.IGNORECASE,
)
NON_WORD_RE = re.compile(r"[^\w\s]")

# A similarity ratio of 75% tolerates punctuation and article differences
# without matching unrelated shows.
SIMILARITY_THRESHOLD = 0.75


def _normalize_title(title: str) -> str:
    title = TITLE_NOISE_RE.sub("", title)
    title = NON_WORD_RE.sub(" ", title.lower())
    return " ".join(title.split())


def title_similarity(a: str, b: str) -> float:
    """Similarity ratio between two show titles after normalization."""
    return SequenceMatcher(None, _normalize_title(a), _normalize_title(b)).ratio()


class TelevisionTunesProvider(ThemeSongProvider):
    """Searches televisiontunes.com by name and follows the best match."""

    name = "TelevisionTunes"
    BASE_URL = "https://www.televisiontunes.com/"

    def __init__(self, client: Optional[ProviderClient] = None):
        self.client = client or ProviderClient(self.name, calls_per_second=1.0)

    def parse_search_results(self, html: str) -> List[Tuple[str, str]]:
        """Extracts (title, absolute song page URL) pairs from a search page."""
        soup = BeautifulSoup(html, "html.parser")
        container = soup.select_one("div.search-results, div.jp-playlist, ul.list") or soup
        results = []
        for a in container.find_all("a", href=True):
            href = a["href"]
            title = a.get_text(" ", strip=True)
            if not title or not href.endswith(".html") or "search.php" in href:
                continue
            results.append((title, urljoin(self.BASE_URL, href)))
        return list(dict.fromkeys(results))

    def parse_download_link(self, html: str) -> Optional[str]:
        """Finds the direct download link on a song page."""
        soup = BeautifulSoup(html, "html.parser")
        link = soup.select_one("a#download_song[href]")
        if link is None:
            link = soup.find("a", href=re.compile(r"/song/download/|\.mp3$"))
        if link is None:
            return None
        return urljoin(self.BASE_URL, link["href"])

    def best_match(self, name: str, results: List[Tuple[str, str]]) -> Optional[Tuple[str, str]]:
        scored = [(title_similarity(name, title), title, url) for title, url in results]
        if not scored:
            return None
        score, title, url = max(scored, key=lambda s: s[0])
        if score < SIMILARITY_THRESHOLD:
            log.debug(
                f"TelevisionTunes: best result '{title}' for '{name}' "
                f"scored {score:.2f}, below threshold"
            )
            return None
        return title, url

    async def resolve(self, candidate: Candidate) -> Optional[str]:
        search_html = await self.client.get_text(
            urljoin(self.BASE_URL, "search.php"), params={"q": candidate.name}
        )
        if not search_html:
            return None

        match = self.best_match(candidate.name, self.parse_search_results(search_html))
        if match is None:
            return None

        title, page_url = match
        log.debug(f"TelevisionTunes: '{candidate.name}' matched '{title}' ({page_url})")
        page_html = await self.client.get_text(page_url)
        if not page_html:
            return None
        return self.parse_download_link(page_html)

    async def close(self) -> None:
        await self.client.close()
