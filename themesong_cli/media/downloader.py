"""
Handles the low-level downloading of theme songs over HTTP.
"""

import asyncio
import logging
import os
from typing import Optional

import aiofiles
import aiohttp

from themesong_cli.exceptions import DownloadError

from .integrity import FileIntegrityChecker

log = logging.getLogger(__name__)

CHUNK_SIZE = 131072  # 128 KB


class Downloader:
    """A streaming file downloader with retry logic and post-download validation."""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.5,
        verify_mp3: bool = True,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.verify_mp3 = verify_mp3
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=None, sock_connect=15, sock_read=60)
            self._session = aiohttp.ClientSession(
                timeout=timeout,
                headers={"Accept-Encoding": "gzip, deflate, br"},
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Closes the HTTP session if this downloader created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
            log.debug("Downloader session closed.")

    async def download_file(self, url: str, destination_path: str) -> int:
        """
        Streams ``url`` into ``destination_path`` and returns the byte count.

        Raises:
            aiohttp.ClientError: On HTTP or connection failure.
            asyncio.TimeoutError: When the server stops responding.
            DownloadError: When the response body is empty.
        """
        session = await self._get_session()
        async with session.get(url, allow_redirects=True) as response:
            response.raise_for_status()
            bytes_downloaded = 0
            async with aiofiles.open(destination_path, "wb") as f:
                async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                    await f.write(chunk)
                    bytes_downloaded += len(chunk)
        if bytes_downloaded == 0:
            raise DownloadError(f"Server returned an empty body for {url}")
        return bytes_downloaded

    async def fetch(
        self,
        url: str,
        destination_path: str,
        cancel: Optional[asyncio.Event] = None,
    ) -> bool:
        """
        Downloads ``url`` to ``destination_path`` with retries.

        Returns True only when the file was written and, if enabled, passed the
        MP3 integrity check. A failed attempt never leaves a partial file.
        """
        last_exception: Optional[BaseException] = None
        downloaded = False
        for attempt in range(1, self.max_attempts + 1):
            try:
                size = await self.download_file(url, destination_path)
                log.debug(
                    f"Downloaded {size} bytes to '{os.path.basename(destination_path)}'"
                )
                downloaded = True
                break
            except (aiohttp.ClientError, asyncio.TimeoutError, DownloadError, OSError) as e:
                last_exception = e
                self._remove_partial(destination_path)
                log.debug(
                    f"Download attempt {attempt}/{self.max_attempts} for "
                    f"'{os.path.basename(destination_path)}' failed: {e}"
                )
                if attempt == self.max_attempts or (cancel is not None and cancel.is_set()):
                    break
                await asyncio.sleep(self.base_delay * (2 ** (attempt - 1)))

        if not downloaded:
            log.error(f"[red]✗ Download failed for {url}: {last_exception}[/red]")
            return False

        if self.verify_mp3 and not await asyncio.to_thread(
            FileIntegrityChecker.check_mp3, destination_path
        ):
            log.error(f"[red]✗ Downloaded file from {url} is not a valid MP3.[/red]")
            self._remove_partial(destination_path)
            return False

        return True

    @staticmethod
    def _remove_partial(path: str) -> None:
        try:
            if os.path.exists(path):
                os.remove(path)
        except OSError as e:
            log.debug(f"Could not remove partial download '{path}': {e}")
