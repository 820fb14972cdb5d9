"""
Video duration probing using FFprobe.

The submission pipeline needs one fact about an introduction video: how
long it is. FFprobe reads that from the container without decoding the
whole file.

FFprobe works on file paths, so the uploaded bytes are written to a
temporary file that belongs to a single request and is removed once the
probe returns, whether it succeeded or not.
"""

import asyncio
import json
import logging
import os
import re
import shutil
import subprocess
import tempfile
from typing import Protocol

from ...core.submission.errors import VideoProbeError

logger = logging.getLogger(__name__)

DEFAULT_SUFFIX = ".webm"

_SUFFIX_PATTERN = re.compile(r"\.[A-Za-z0-9]{1,10}")


class VideoProbe(Protocol):
    """Protocol for reading a video's duration."""

    async def get_duration(self, video_data: bytes, suffix: str = DEFAULT_SUFFIX) -> float:
        """Return the duration in seconds. Raises VideoProbeError on failure."""
        ...

    def is_available(self) -> bool:
        """Whether the probe can run in this environment."""
        ...


def parse_duration(info: dict) -> float:
    """
    Pull the duration out of FFprobe's JSON output.

    The container duration wins. Otherwise the longest stream duration is
    used. Browser-recorded WEBM files often carry neither, in which case
    the duration is reported as 0.0.
    """
    format_duration = info.get("format", {}).get("duration")
    if format_duration not in (None, "N/A"):
        return float(format_duration)

    stream_durations = [
        float(stream["duration"])
        for stream in info.get("streams", [])
        if stream.get("duration") not in (None, "N/A")
    ]
    if stream_durations:
        return max(stream_durations)

    logger.warning("FFprobe reported no duration, treating as 0s")
    return 0.0


def _temp_suffix(suffix: str) -> str:
    """Only short alphanumeric suffixes reach mkstemp."""
    if suffix and _SUFFIX_PATTERN.fullmatch(suffix):
        return suffix
    return DEFAULT_SUFFIX


def _write_temp_file(data: bytes, suffix: str) -> str:
    fd, path = tempfile.mkstemp(prefix="probe_", suffix=suffix)
    try:
        with os.fdopen(fd, "wb") as tmp:
            tmp.write(data)
    except BaseException:
        os.unlink(path)
        raise
    return path


class FFprobeVideoProbe:
    """
    Duration probe backed by the ffprobe binary.

    The binary is looked up at probe time rather than at startup, so a
    missing install surfaces as a VideoProbeError on the request that
    needed it instead of preventing the service from starting.
    """

    def __init__(self, ffprobe_path: str = "ffprobe", timeout_seconds: float = 30.0):
        """
        Args:
            ffprobe_path: Path to ffprobe binary (default assumes it's in PATH)
            timeout_seconds: Upper bound on a single probe
        """
        self._ffprobe = ffprobe_path
        self._timeout = timeout_seconds

    def is_available(self) -> bool:
        return shutil.which(self._ffprobe) is not None

    async def get_duration(self, video_data: bytes, suffix: str = DEFAULT_SUFFIX) -> float:
        tmp_path = await asyncio.to_thread(_write_temp_file, video_data, _temp_suffix(suffix))

        try:
            cmd = [
                self._ffprobe,
                "-v", "quiet",
                "-print_format", "json",
                "-show_format",
                "-show_streams",
                tmp_path
            ]

            try:
                result = await asyncio.to_thread(
                    subprocess.run,
                    cmd,
                    capture_output=True,
                    text=True,
                    timeout=self._timeout
                )
            except FileNotFoundError:
                logger.error("FFprobe binary not found", extra={"ffprobe": self._ffprobe})
                raise VideoProbeError(f"ffprobe not found: {self._ffprobe}")
            except subprocess.TimeoutExpired:
                logger.error("FFprobe timed out", extra={"timeout_seconds": self._timeout})
                raise VideoProbeError(f"ffprobe timed out after {self._timeout}s")

            if result.returncode != 0:
                logger.error(
                    "FFprobe failed",
                    extra={"returncode": result.returncode, "stderr": result.stderr[:500]}
                )
                raise VideoProbeError(f"ffprobe exited with {result.returncode}")

            try:
                duration = parse_duration(json.loads(result.stdout))
            except (ValueError, TypeError, AttributeError) as e:
                logger.error("Unreadable FFprobe output", extra={"error": str(e)})
                raise VideoProbeError(f"could not parse ffprobe output: {e}")

            logger.info(
                "Probed video duration",
                extra={"duration_seconds": duration, "size_bytes": len(video_data)}
            )
            return duration

        finally:
            os.unlink(tmp_path)


class MockVideoProbe:
    """
    Mock probe for local development without FFmpeg.

    Reports the same configured duration for every video.
    """

    def __init__(self, duration_seconds: float = 30.0):
        self._duration = duration_seconds
        logger.info("Initialized mock video probe")

    def is_available(self) -> bool:
        return True

    async def get_duration(self, video_data: bytes, suffix: str = DEFAULT_SUFFIX) -> float:
        return self._duration


def create_video_probe(
    mock_mode: bool = False,
    ffprobe_path: str = "ffprobe",
    timeout_seconds: float = 30.0,
) -> VideoProbe:
    """
    Factory function for the video probe.

    Args:
        mock_mode: If True, return mock probe (no FFmpeg required)
        ffprobe_path: Path to ffprobe binary
        timeout_seconds: Upper bound on a single probe
    """
    if mock_mode:
        return MockVideoProbe()

    return FFprobeVideoProbe(ffprobe_path=ffprobe_path, timeout_seconds=timeout_seconds)
