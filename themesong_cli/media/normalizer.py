"""
Loudness normalization and fading of theme songs with ffmpeg.

The pipeline first measures the file's peak volume and only re-encodes when
it is more than ``VOLUME_EPSILON_DB`` away from the configured target, so
running it again over its own output is a no-op.
"""

import logging
import math
import re
from pathlib import Path
from typing import Optional, Tuple

from themesong_cli.exceptions import TranscoderExecutionError, VolumeDetectionError
from themesong_cli.models.candidate import (
    NormalizationDecision,
    NormalizationPlan,
    VolumeReading,
)
from themesong_cli.models.config import ThemeSongConfig
from themesong_cli.utils.formatting import format_db
from themesong_cli.utils.path import sibling_binary

from .command_runner import CommandRunner, Runner

log = logging.getLogger(__name__)

VOLUME_EPSILON_DB = 0.5
MAX_FADE_FRACTION = 0.25
FALLBACK_FADE_SECONDS = 1.0
HEADROOM_DB = -1
SILENCE_THRESHOLD = "-50dB"
SILENCE_DURATION = 0.1
NORMALIZED_PREFIX = "normalized_"

MAX_VOLUME_RE = re.compile(
    r"max_volume:\s*(?P<value>[-+]?(?:\d+(?:\.\d+)?|inf))\s*dB", re.IGNORECASE
)


def parse_max_volume(output: str) -> VolumeReading:
    """
    Extracts the loudest-peak reading from ffmpeg volumedetect diagnostics.

    Raises:
        VolumeDetectionError: If no ``max_volume`` line can be parsed.
    """
    for line in output.splitlines():
        if match := MAX_VOLUME_RE.search(line):
            return VolumeReading(db=float(match.group("value")), raw=line.strip())
    raise VolumeDetectionError("Could not extract volume information from ffmpeg output")


def is_within_tolerance(
    target_db: float, detected_db: float, epsilon: float = VOLUME_EPSILON_DB
) -> bool:
    return abs(target_db - detected_db) < epsilon


def _floor2(value: float) -> float:
    return math.floor(value * 100) / 100


def clamp_fades(fade_in: float, fade_out: float, duration: float) -> Tuple[float, float]:
    """
    Limits fades to a quarter of the clip each.

    With an unknown duration (``<= 0``) neither fade may exceed one second.
    """
    fade_in, fade_out = max(0.0, fade_in), max(0.0, fade_out)
    if duration > 0:
        limit = duration * MAX_FADE_FRACTION
    else:
        limit = FALLBACK_FADE_SECONDS
    return _floor2(min(fade_in, limit)), _floor2(min(fade_out, limit))


def build_filter_chain(plan: NormalizationPlan) -> str:
    """
    Builds the ffmpeg ``-af`` argument for an APPLY plan.

    Order is fixed: trim silence, add headroom, loudness-normalize, then fade
    in and out on the normalized signal. A fade clamped to zero is left out;
    afade treats ``d=0`` as unset.
    """
    filters = [
        (
            f"silenceremove=start_periods=1:start_silence={SILENCE_DURATION}"
            f":start_threshold={SILENCE_THRESHOLD}:stop_periods=1"
            f":stop_silence={SILENCE_DURATION}:stop_threshold={SILENCE_THRESHOLD}"
        ),
        f"volume={HEADROOM_DB}dB",
        "loudnorm",
    ]
    if plan.fade_in > 0:
        filters.append(f"afade=t=in:st=0:d={plan.fade_in:.2f}:curve=hsin")
    if plan.fade_out > 0:
        filters.append(
            f"afade=t=out:st={plan.fade_out_start:.2f}:d={plan.fade_out:.2f}:curve=hsin"
        )
    return ",".join(filters)


def normalized_output_path(input_path: Path) -> Path:
    """Sibling path the normalized file is written to."""
    return input_path.with_name(f"{NORMALIZED_PREFIX}{input_path.name}")


class NormalizationPipeline:
    """
    Decides whether a staged file needs normalization and runs ffmpeg if so.

    Whether ffmpeg is usable is probed once per configured binary path and
    cached; a missing ffmpeg disables normalization instead of failing.
    """

    def __init__(self, runner: Optional[Runner] = None):
        self.runner: Runner = runner or CommandRunner()
        self._available: Optional[bool] = None
        self._checked_path: Optional[str] = None

    async def is_available(self, ffmpeg_path: str) -> bool:
        if self._available is not None and self._checked_path == ffmpeg_path:
            return self._available

        self._checked_path = ffmpeg_path
        try:
            result = await self.runner.run([ffmpeg_path, "-version"])
        except OSError as e:
            log.warning(
                f"[yellow]FFmpeg at '{ffmpeg_path}' is not available ({e}). "
                "Audio normalization will be disabled.[/yellow]"
            )
            self._available = False
            return False

        self._available = result.ok
        if self._available:
            log.info(f"FFmpeg found at '{ffmpeg_path}'")
        else:
            log.warning(
                f"[yellow]FFmpeg at '{ffmpeg_path}' returned exit code "
                f"{result.exit_code}. Audio normalization will be disabled.[/yellow]"
            )
        return self._available

    async def _run_ffmpeg(self, ffmpeg_path: str, args: list, what: str):
        try:
            result = await self.runner.run([ffmpeg_path, "-hide_banner", "-nostdin", *args])
        except OSError as e:
            raise TranscoderExecutionError(f"FFmpeg {what} could not start: {e}") from e
        if not result.ok:
            tail = result.stderr.strip()[-500:]
            raise TranscoderExecutionError(
                f"FFmpeg {what} failed with exit code {result.exit_code}: {tail}",
                exit_code=result.exit_code,
                stderr=result.stderr,
            )
        return result

    async def detect_volume(self, path: Path, ffmpeg_path: str) -> VolumeReading:
        log.debug(f"Running volume detection for '{path.name}'")
        result = await self._run_ffmpeg(
            ffmpeg_path,
            ["-i", str(path), "-af", "volumedetect", "-f", "null", "-"],
            "volume detection",
        )
        # volumedetect reports on the diagnostic stream
        return parse_max_volume(f"{result.stderr}\n{result.stdout}")

    async def probe_duration(self, path: Path, ffmpeg_path: str) -> float:
        """Clip duration in seconds via ffprobe, or 0.0 if it cannot be read."""
        ffprobe_path = sibling_binary(ffmpeg_path, "ffprobe")
        args = [
            ffprobe_path,
            "-v",
            "error",
            "-show_entries",
            "format=duration",
            "-of",
            "default=noprint_wrappers=1:nokey=1",
            str(path),
        ]
        try:
            result = await self.runner.run(args)
        except OSError as e:
            log.warning(f"[yellow]Could not run ffprobe at '{ffprobe_path}': {e}[/yellow]")
            return 0.0

        output = result.stdout.strip()
        try:
            duration = float(output)
        except ValueError:
            duration = 0.0
        if not result.ok or not math.isfinite(duration) or duration <= 0:
            log.warning(
                f"[yellow]Failed to retrieve audio duration for '{path.name}'. "
                f"Output: {output or result.stderr.strip()}[/yellow]"
            )
            return 0.0
        return duration

    async def plan(self, path: Path, config: ThemeSongConfig) -> NormalizationPlan:
        """Measures ``path`` and decides whether and how to normalize it."""
        target = float(config.normalize_audio_volume)
        reading = await self.detect_volume(path, config.ffmpeg_path)

        if is_within_tolerance(target, reading.db):
            return NormalizationPlan(
                target_db=target,
                detected_db=reading.db,
                fade_in=0.0,
                fade_out=0.0,
                duration=0.0,
                decision=NormalizationDecision.SKIP,
            )

        duration = await self.probe_duration(path, config.ffmpeg_path)
        fade_in, fade_out = clamp_fades(
            config.fade_in_duration, config.fade_out_duration, duration
        )
        return NormalizationPlan(
            target_db=target,
            detected_db=reading.db,
            fade_in=fade_in,
            fade_out=fade_out,
            duration=duration,
            decision=NormalizationDecision.APPLY,
        )

    async def apply(self, path: Path, plan: NormalizationPlan, ffmpeg_path: str) -> Path:
        """Writes the normalized copy of ``path`` and returns its location."""
        output_path = normalized_output_path(path)
        output_path.unlink(missing_ok=True)

        log.info(f"Normalizing audio '{path.name}' -> '{output_path.name}'")
        try:
            await self._run_ffmpeg(
                ffmpeg_path,
                ["-i", str(path), "-af", build_filter_chain(plan), "-y", str(output_path)],
                "normalization",
            )
        except TranscoderExecutionError:
            output_path.unlink(missing_ok=True)
            raise

        if not output_path.is_file():
            raise TranscoderExecutionError(
                f"FFmpeg reported success but '{output_path.name}' was not written"
            )
        return output_path

    async def normalize(self, staged_path: Path, config: ThemeSongConfig) -> Path:
        """
        Returns the path of the file to place: a new normalized file, or
        ``staged_path`` itself when normalization is disabled, unavailable or
        unnecessary.

        Raises:
            FileNotFoundError: If ``staged_path`` does not exist.
            TranscoderError: If detection or transcoding fails.
        """
        if not staged_path.is_file():
            raise FileNotFoundError(f"File not found: {staged_path}")

        if not config.normalize_audio:
            log.debug("Audio normalization is disabled in configuration")
            return staged_path

        if not await self.is_available(config.ffmpeg_path):
            log.debug(f"Skipping normalization for '{staged_path.name}' (no ffmpeg)")
            return staged_path

        plan = await self.plan(staged_path, config)
        if plan.decision is NormalizationDecision.SKIP:
            log.info(
                f"Audio volume is already normalized for '{staged_path.name}': "
                f"{format_db(plan.detected_db)}"
            )
            return staged_path

        log.debug(
            f"Detected {format_db(plan.detected_db)} (target {format_db(plan.target_db)}), "
            f"fades {plan.fade_in:.2f}s/{plan.fade_out:.2f}s over {plan.duration:.2f}s"
        )
        return await self.apply(staged_path, plan, config.ffmpeg_path)
