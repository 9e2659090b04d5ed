"""
Runs external binaries (ffmpeg, ffprobe) and captures their output.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol, Sequence

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Exit status and decoded output streams of a finished process."""

    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class Runner(Protocol):
    """Anything that can run a command and return a CommandResult."""

    async def run(self, args: Sequence[str]) -> CommandResult: ...


class CommandRunner:
    """
    Spawns a process without a shell and waits for it to finish.

    A missing or non-executable binary raises ``OSError`` (usually
    ``FileNotFoundError``) so callers can tell "not installed" apart from
    "ran and failed".
    """

    async def run(self, args: Sequence[str]) -> CommandResult:
        log.debug(f"Running: {' '.join(args)}")
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout_raw, stderr_raw = await proc.communicate()
        return CommandResult(
            exit_code=proc.returncode if proc.returncode is not None else -1,
            stdout=stdout_raw.decode("utf-8", errors="replace"),
            stderr=stderr_raw.decode("utf-8", errors="replace"),
        )
