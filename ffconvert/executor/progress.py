"""Decoder for FFMPEG's ``-progress`` key=value output."""

from typing import Optional

from pydantic import BaseModel, ConfigDict

PROGRESS_END = "progress=end"


class ConversionProgress(BaseModel):
    """One progress observation taken from a single output line."""
    model_config = ConfigDict(frozen=True)

    frame: Optional[int] = None
    fps: Optional[float] = None
    bitrate: Optional[str] = None
    total_size: Optional[int] = None
    out_time_us: Optional[int] = None
    speed: Optional[float] = None
    progress: Optional[str] = None
    percentage: Optional[float] = None


def _parse_unsigned(value: str) -> Optional[int]:
    if not value.isascii() or not value.isdigit():
        return None
    return int(value)


def _parse_float(value: str) -> Optional[float]:
    try:
        return float(value)
    except ValueError:
        return None


def parse_progress_line(
    line: str,
    total_duration: Optional[float] = None,
) -> Optional[ConversionProgress]:
    """Decode whitespace-separated ``key=value`` tokens.

    Args:
        line: One line read from the transcoder's progress stream.
        total_duration: Expected output length in seconds, if known.

    Returns:
        A :class:`ConversionProgress`, or ``None`` when the line carries
        neither a ``frame`` nor a ``progress`` key.
    """
    fields: dict = {}

    for part in line.split():
        key, sep, value = part.partition("=")
        if not sep:
            continue
        if key == "frame":
            fields["frame"] = _parse_unsigned(value)
        elif key == "fps":
            fields["fps"] = _parse_float(value)
        elif key == "bitrate":
            fields["bitrate"] = value
        elif key == "total_size":
            fields["total_size"] = _parse_unsigned(value)
        elif key == "out_time_us":
            fields["out_time_us"] = _parse_unsigned(value)
        elif key == "speed":
            fields["speed"] = _parse_float(value.rstrip("x"))
        elif key == "progress":
            fields["progress"] = value

    if fields.get("frame") is None and "progress" not in fields:
        return None

    out_time_us = fields.get("out_time_us")
    if out_time_us is not None and total_duration and total_duration > 0:
        seconds = out_time_us / 1_000_000
        fields["percentage"] = max(0.0, min(100.0, seconds / total_duration * 100))

    return ConversionProgress(**fields)
