from __future__ import annotations

import asyncio
from pathlib import Path

import aiohttp

from themesong_cli.exceptions import DownloadError
from themesong_cli.media.downloader import Downloader
from themesong_cli.media.integrity import FileIntegrityChecker


def _flaky(failures: int, payload: bytes = b"ID3 audio"):
    attempts = []

    async def download_file(url, destination_path):
        attempts.append(url)
        Path(destination_path).write_bytes(b"half")
        if len(attempts) <= failures:
            raise aiohttp.ClientConnectionError("connection reset")
        Path(destination_path).write_bytes(payload)
        return len(payload)

    return download_file, attempts


def test_retries_until_download_succeeds(tmp_path, monkeypatch) -> None:
    downloader = Downloader(max_attempts=3, base_delay=0, verify_mp3=False)
    download_file, attempts = _flaky(failures=2)
    monkeypatch.setattr(downloader, "download_file", download_file)
    destination = tmp_path / "theme.mp3"

    ok = asyncio.run(downloader.fetch("https://x/a.mp3", str(destination)))

    assert ok is True
    assert len(attempts) == 3
    assert destination.read_bytes() == b"ID3 audio"


def test_exhausted_attempts_leave_no_partial_file(tmp_path, monkeypatch) -> None:
    downloader = Downloader(max_attempts=2, base_delay=0, verify_mp3=False)
    download_file, attempts = _flaky(failures=5)
    monkeypatch.setattr(downloader, "download_file", download_file)
    destination = tmp_path / "theme.mp3"

    ok = asyncio.run(downloader.fetch("https://x/a.mp3", str(destination)))

    assert ok is False
    assert len(attempts) == 2
    assert not destination.exists()


def test_cancellation_stops_further_attempts(tmp_path, monkeypatch) -> None:
    downloader = Downloader(max_attempts=5, base_delay=0, verify_mp3=False)
    download_file, attempts = _flaky(failures=5)
    monkeypatch.setattr(downloader, "download_file", download_file)

    async def _fetch():
        cancel = asyncio.Event()
        cancel.set()
        return await downloader.fetch("https://x/a.mp3", str(tmp_path / "t.mp3"), cancel)

    assert asyncio.run(_fetch()) is False
    assert len(attempts) == 1


def test_empty_body_counts_as_failed_attempt(tmp_path, monkeypatch) -> None:
    downloader = Downloader(max_attempts=2, base_delay=0, verify_mp3=False)
    calls = []

    async def download_file(url, destination_path):
        calls.append(url)
        raise DownloadError(f"Server returned an empty body for {url}")

    monkeypatch.setattr(downloader, "download_file", download_file)

    assert asyncio.run(downloader.fetch("https://x/a.mp3", str(tmp_path / "t.mp3"))) is False
    assert len(calls) == 2


def test_non_mp3_download_is_rejected_and_removed(tmp_path, monkeypatch) -> None:
    downloader = Downloader(max_attempts=1, base_delay=0, verify_mp3=True)
    download_file, _ = _flaky(failures=0, payload=b"<html>Not Found</html>")
    monkeypatch.setattr(downloader, "download_file", download_file)
    destination = tmp_path / "theme.mp3"

    ok = asyncio.run(downloader.fetch("https://x/a.mp3", str(destination)))

    assert ok is False
    assert not destination.exists()


def test_integrity_check_rejects_garbage(tmp_path) -> None:
    garbage = tmp_path / "garbage.mp3"
    garbage.write_bytes(b"\x00" * 64)

    assert FileIntegrityChecker.check_mp3(str(garbage)) is False
    assert FileIntegrityChecker.mp3_duration(str(tmp_path / "missing.mp3")) == 0.0
