"""Media metadata extraction from FFMPEG diagnostic output.

Metadata comes from the free-text log FFMPEG prints to stderr when it
opens an input. The matching rules below are tied to that log format:
a change in the tool's wording silently degrades extraction to "field
absent" instead of failing the call.
"""

import asyncio
import json
import logging
import os
import re
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict

from ..errors import FFmpegNotFoundError, ProbeError

logger = logging.getLogger("ffconvert")

DURATION_MARKER = "Duration: "
VIDEO_MARKER = "Video: "
AUDIO_MARKER = "Audio: "
BITRATE_MARKER = "bitrate: "
FPS_MARKER = " fps"

_NUMBER_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")
_RESOLUTION_RE = re.compile(r"(\d+)x(\d+)")
_PART_SPLIT_RE = re.compile(r"[, ]")


class MediaInfo(BaseModel):
    """Media properties scraped from diagnostic text.

    Every field is optional; ``None`` means the value was not found.
    """
    model_config = ConfigDict(frozen=True)

    duration: Optional[float] = None
    width: Optional[int] = None
    height: Optional[int] = None
    video_codec: Optional[str] = None
    audio_codec: Optional[str] = None
    bitrate: Optional[str] = None
    fps: Optional[float] = None
    file_size: Optional[int] = None


def _parse_float(text: str) -> Optional[float]:
    if not _NUMBER_RE.fullmatch(text):
        return None
    return float(text)


def _is_dimension(value) -> bool:
    """True for a JSON unsigned integer; booleans are rejected."""
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _token_after(line: str, marker: str) -> Optional[str]:
    """Text following ``marker`` up to the next space, if both exist."""
    pos = line.find(marker)
    if pos == -1:
        return None
    rest = line[pos + len(marker):]
    end = rest.find(" ")
    if end == -1:
        return None
    return rest[:end]


def extract_duration_from_line(line: str) -> Optional[str]:
    """Return the raw ``H:MM:SS.ff`` text between ``Duration: `` and ``,``."""
    pos = line.find(DURATION_MARKER)
    if pos == -1:
        return None
    rest = line[pos + len(DURATION_MARKER):]
    end = rest.find(",")
    if end == -1:
        return None
    return rest[:end]


def parse_duration(duration_str: str) -> Optional[float]:
    """Convert ``H:MM:SS[.fraction]`` into seconds."""
    parts = duration_str.split(":")
    if len(parts) != 3:
        return None
    values = [_parse_float(part) for part in parts]
    if any(v is None for v in values):
        return None
    hours, minutes, seconds = values
    return hours * 3600.0 + minutes * 60.0 + seconds


def extract_resolution(line: str) -> tuple[Optional[int], Optional[int]]:
    """Find the first ``<digits>x<digits>`` part of a stream line.

    Parts containing ``@`` or ``.`` are skipped so that frame-rate and
    aspect-ratio tokens are never mistaken for a resolution.
    """
    for part in _PART_SPLIT_RE.split(line):
        if "x" not in part or "@" in part or "." in part:
            continue
        match = _RESOLUTION_RE.fullmatch(part)
        if match:
            return int(match.group(1)), int(match.group(2))
    return None, None


def extract_fps(line: str) -> Optional[float]:
    """Parse the token immediately preceding the first `` fps``."""
    pos = line.find(FPS_MARKER)
    if pos == -1:
        return None
    before = line[:pos]
    start = before.rfind(" ")
    if start == -1:
        return None
    return _parse_float(before[start + 1:])


def extract_video_info_from_line(
    line: str,
) -> Optional[tuple[str, Optional[int], Optional[int], Optional[float]]]:
    """Return ``(codec, width, height, fps)`` or ``None`` without a codec."""
    codec = _token_after(line, VIDEO_MARKER)
    if not codec:
        return None
    width, height = extract_resolution(line)
    return codec.rstrip(","), width, height, extract_fps(line)


def extract_audio_codec_from_line(line: str) -> Optional[str]:
    codec = _token_after(line, AUDIO_MARKER)
    return codec.rstrip(",") if codec else None


def extract_bitrate_from_line(line: str) -> Optional[str]:
    return _token_after(line, BITRATE_MARKER)


def parse_media_info(text: str, file_size: Optional[int] = None) -> MediaInfo:
    """Scan diagnostic text line by line into a :class:`MediaInfo`.

    Later matching lines overwrite fields set by earlier ones. Nothing in
    here raises on malformed input.
    """
    fields: dict = {"file_size": file_size}

    for line in text.splitlines():
        if "Duration:" in line:
            duration_str = extract_duration_from_line(line)
            if duration_str is not None:
                fields["duration"] = parse_duration(duration_str)

        if "Stream" in line and "Video:" in line:
            video = extract_video_info_from_line(line)
            if video is not None:
                codec, width, height, fps = video
                fields.update(
                    video_codec=codec, width=width, height=height, fps=fps,
                )

        if "Stream" in line and "Audio:" in line:
            codec = extract_audio_codec_from_line(line)
            if codec:
                fields["audio_codec"] = codec

        if "bitrate:" in line:
            bitrate = extract_bitrate_from_line(line)
            if bitrate:
                fields["bitrate"] = bitrate

    return MediaInfo(**fields)


class MediaAnalyzer:
    """Runs lightweight probes against media files."""

    def __init__(self, ffmpeg_path: str = "ffmpeg", ffprobe_path: str = "ffprobe"):
        """Initialize the analyzer.

        Args:
            ffmpeg_path: Transcoder used for the diagnostic probe.
            ffprobe_path: Probe used for structured dimension queries.
        """
        self.ffmpeg_path = ffmpeg_path
        self.ffprobe_path = ffprobe_path

    async def _capture(self, cmd: list[str]) -> tuple[int, bytes, bytes]:
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise FFmpegNotFoundError(f"Failed to execute {cmd[0]}: {e}") from e

        stdout, stderr = await proc.communicate()
        return proc.returncode, stdout, stderr

    async def get_media_info(self, input_path: str | Path) -> MediaInfo:
        """Probe ``input_path`` and parse the diagnostic log.

        The probe gives FFMPEG an input but no output, so it exits
        non-zero by design; only its stderr matters.

        Raises:
            FFmpegNotFoundError: If the transcoder cannot be executed.
        """
        cmd = [self.ffmpeg_path, "-hide_banner", "-i", str(input_path)]
        _, _, stderr = await self._capture(cmd)

        file_size = None
        if os.path.isfile(input_path):
            file_size = os.path.getsize(input_path)

        return parse_media_info(
            stderr.decode("utf-8", errors="replace"), file_size=file_size,
        )

    async def get_dimensions(self, path: str | Path) -> tuple[int, int]:
        """Return ``(width, height)`` of the first stream that has both.

        Raises:
            FFmpegNotFoundError: If ffprobe cannot be executed.
            ProbeError: If ffprobe fails, emits invalid JSON or reports no
                stream with dimensions.
        """
        cmd = [
            self.ffprobe_path,
            "-v", "quiet",
            "-print_format", "json",
            "-show_streams",
            str(path),
        ]
        returncode, stdout, stderr = await self._capture(cmd)
        if returncode != 0:
            raise ProbeError(
                f"ffprobe failed: {stderr.decode('utf-8', errors='replace').strip()}"
            )

        try:
            data = json.loads(stdout.decode("utf-8", errors="replace") or "{}")
        except json.JSONDecodeError as e:
            raise ProbeError(f"Failed to parse ffprobe output: {e}") from e

        streams = data.get("streams")
        if not isinstance(streams, list):
            raise ProbeError("No streams found in ffprobe output")

        for stream in streams:
            width = stream.get("width")
            height = stream.get("height")
            if _is_dimension(width) and _is_dimension(height):
                return width, height

        raise ProbeError("No video/image stream with dimensions found")
