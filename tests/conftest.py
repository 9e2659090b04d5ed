import sys
from pathlib import Path
from typing import List, Optional, Sequence

import pytest

# Ensure tests can import project packages regardless of how pytest is invoked.
ROOT = Path(__file__).resolve().parents[1]
ROOT_STR = str(ROOT)
if ROOT_STR not in sys.path:
    sys.path.insert(0, ROOT_STR)

from themesong_cli.media.command_runner import CommandResult  # noqa: E402
from themesong_cli.models.config import ThemeSongConfig  # noqa: E402
from themesong_cli.providers.base import ThemeSongProvider  # noqa: E402


class FakeFfmpeg:
    """Scripted stand-in for ffmpeg/ffprobe that records every invocation."""

    def __init__(
        self,
        max_volume: float = -12.0,
        duration: str = "120.0",
        installed: bool = True,
        fail_transcode: bool = False,
    ):
        self.max_volume = max_volume
        self.duration = duration
        self.installed = installed
        self.fail_transcode = fail_transcode
        self.calls: List[List[str]] = []

    def calls_with(self, marker: str) -> List[List[str]]:
        return [c for c in self.calls if marker in c]

    async def run(self, args: Sequence[str]) -> CommandResult:
        args = list(args)
        self.calls.append(args)
        if not self.installed:
            raise FileNotFoundError(2, "No such file or directory", args[0])
        if "-version" in args:
            return CommandResult(0, "ffmpeg version 6.1", "")
        if Path(args[0]).name.startswith("ffprobe"):
            return CommandResult(0, f"{self.duration}\n", "")
        if "volumedetect" in args:
            stderr = (
                "[Parsed_volumedetect_0 @ 0x55] n_samples: 5292000\n"
                "[Parsed_volumedetect_0 @ 0x55] mean_volume: -24.3 dB\n"
                f"[Parsed_volumedetect_0 @ 0x55] max_volume: {self.max_volume} dB\n"
            )
            return CommandResult(0, "", stderr)
        output = Path(args[-1])
        if self.fail_transcode:
            output.write_bytes(b"partial")
            return CommandResult(1, "", "Error while filtering: Invalid argument")
        output.write_bytes(b"normalized audio")
        return CommandResult(0, "", "size=1024kB time=00:02:00.00")


class FakeProvider(ThemeSongProvider):
    def __init__(self, name: str, url: Optional[str] = None, error: Optional[Exception] = None):
        self.name = name
        self.url = url
        self.error = error
        self.calls: List[str] = []
        self.closed = False

    async def resolve(self, candidate):
        self.calls.append(candidate.identity)
        if self.error is not None:
            raise self.error
        return self.url

    async def close(self):
        self.closed = True


class FakeDownloader:
    """Writes fixed bytes instead of hitting the network."""

    def __init__(self, payload: bytes = b"ID3 downloaded audio", succeed: bool = True):
        self.payload = payload
        self.succeed = succeed
        self.requests: List[tuple] = []

    async def fetch(self, url, destination_path, cancel=None):
        self.requests.append((url, destination_path))
        if not self.succeed:
            return False
        Path(destination_path).write_bytes(self.payload)
        return True


@pytest.fixture
def make_config(tmp_path):
    def _make(**overrides) -> ThemeSongConfig:
        values = {
            "library_paths": [str(tmp_path / "tv")],
            "cache_dir": str(tmp_path / "staging"),
            "config_path": str(tmp_path),
        }
        values.update(overrides)
        return ThemeSongConfig(**values)

    return _make
