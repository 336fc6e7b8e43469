"""FFMPEG argument construction for video and image conversions."""

import os
import re
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..video.formats import (
    CRF_BY_TIER,
    DEFAULT_CRF,
    DEFAULT_ICO_SIZE,
    DEFAULT_WEBP_QUALITY,
    WEBP_QUALITY_BY_TIER,
    CodecProfile,
    VideoCodec,
    codec_profile_for,
    is_image_format,
)

# atempo distorts audio noticeably outside this window.
MIN_TEMPO = 0.5
MAX_TEMPO = 4.0

_QUALITY_LEVEL_RE = re.compile(r"\+?\d+")


def format_number(value: str | int | float) -> str:
    """Render a number the way it appears on the command line.

    Integral floats drop their fractional part (``2.0`` -> ``"2"``) and
    other floats are written in plain decimal form, since FFMPEG's time
    parser rejects exponent notation (``5e-05`` -> ``"0.00005"``).
    """
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return format(Decimal(repr(value)), "f")
    return str(value)


class DurationMode(str, Enum):
    """How a requested duration is applied to the source."""
    TRIM = "trim"
    COMPRESS = "compress"

    @classmethod
    def from_token(cls, token: Optional[str]) -> "DurationMode":
        """Unknown or missing tokens fall back to trimming."""
        if token == cls.COMPRESS.value:
            return cls.COMPRESS
        return cls.TRIM


class ConversionRequest(BaseModel):
    """Parameters of a single conversion."""
    model_config = ConfigDict(frozen=True)

    input_path: str
    output_path: str
    format: str
    quality: Optional[str] = None
    width: Optional[int] = Field(default=None, ge=0)
    height: Optional[int] = Field(default=None, ge=0)
    duration: Optional[float] = Field(default=None, gt=0)
    duration_mode: Optional[str] = None
    fps: Optional[float] = Field(default=None, gt=0)
    disable_audio: bool = False

    @field_validator("input_path", "output_path", mode="before")
    @classmethod
    def _coerce_path(cls, value):
        if isinstance(value, os.PathLike):
            return os.fspath(value)
        return value

    @field_validator("quality", mode="before")
    @classmethod
    def _coerce_quality(cls, value):
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @property
    def mode(self) -> DurationMode:
        return DurationMode.from_token(self.duration_mode)

    @property
    def dimensions(self) -> Optional[tuple[int, int]]:
        """``(width, height)`` when both are set."""
        if self.width is not None and self.height is not None:
            return self.width, self.height
        return None

    @property
    def input_extension(self) -> str:
        return Path(self.input_path).suffix.lstrip(".").lower()

    @property
    def output_extension(self) -> str:
        return Path(self.output_path).suffix.lstrip(".").lower()

    @property
    def is_image_conversion(self) -> bool:
        """True when both ends of the conversion are still images."""
        return is_image_format(self.input_extension) and is_image_format(
            self.output_extension
        )


@dataclass
class Filter:
    """A single FFMPEG filter with positional arguments."""
    name: str
    args: list[str | int | float] = field(default_factory=list)

    def to_string(self) -> str:
        """Convert filter to FFMPEG filter string."""
        if not self.args:
            return self.name
        return f"{self.name}=" + ":".join(format_number(a) for a in self.args)


@dataclass
class FilterChain:
    """A chain of filters connected in sequence."""
    filters: list[Filter] = field(default_factory=list)

    def add(self, filter_obj: Filter) -> "FilterChain":
        """Add a filter to the chain."""
        self.filters.append(filter_obj)
        return self

    def add_filter(self, name: str, *args: str | int | float) -> "FilterChain":
        """Add a filter by name and positional arguments."""
        self.filters.append(Filter(name=name, args=list(args)))
        return self

    def to_string(self) -> str:
        """Convert filter chain to FFMPEG filter string."""
        if not self.filters:
            return ""
        return ",".join(f.to_string() for f in self.filters)

    def __bool__(self) -> bool:
        return bool(self.filters)


def scale_filter(width: int, height: int) -> Filter:
    return Filter("scale", [width, height])


class CommandBuilder:
    """Fluent builder that keeps arguments in the order they are added."""

    def __init__(self):
        self._args: list[str] = []

    def input(self, path: str | Path) -> "CommandBuilder":
        """Add an input file."""
        self._args.extend(["-i", str(path)])
        return self

    def overwrite(self) -> "CommandBuilder":
        self._args.append("-y")
        return self

    def limit_duration(self, seconds: float) -> "CommandBuilder":
        """Stop writing output after ``seconds``."""
        self._args.extend(["-t", format_number(seconds)])
        return self

    def video_filter(self, chain: FilterChain | Filter, flag: str = "-vf") -> "CommandBuilder":
        """Add a video filter graph under ``flag`` (``-vf`` or ``-filter:v``)."""
        self._args.extend([flag, chain.to_string()])
        return self

    def audio_filter(self, chain: FilterChain | Filter, flag: str = "-af") -> "CommandBuilder":
        """Add an audio filter graph under ``flag`` (``-af`` or ``-filter:a``)."""
        self._args.extend([flag, chain.to_string()])
        return self

    def scale(self, width: int, height: int) -> "CommandBuilder":
        """Add a plain scale filter."""
        return self.video_filter(scale_filter(width, height))

    def retime(
        self,
        speed_factor: float,
        size: Optional[tuple[int, int]] = None,
    ) -> "CommandBuilder":
        """Play the source ``speed_factor`` times faster.

        Audio is tempo-shifted when the factor lies within
        [``MIN_TEMPO``, ``MAX_TEMPO``] and dropped otherwise.
        """
        video = FilterChain()
        if size is not None:
            video.add(scale_filter(*size))
        video.add_filter("setpts", f"PTS/{format_number(speed_factor)}")
        self.video_filter(video, flag="-filter:v")

        if MIN_TEMPO <= speed_factor <= MAX_TEMPO:
            self.audio_filter(Filter("atempo", [speed_factor]), flag="-filter:a")
        else:
            self.no_audio()
        return self

    def frame_rate(self, rate: float) -> "CommandBuilder":
        """Set output frame rate."""
        self._args.extend(["-r", format_number(rate)])
        return self

    def no_audio(self) -> "CommandBuilder":
        """Remove audio from output."""
        self._args.append("-an")
        return self

    def codec(self, profile: CodecProfile, quality: str) -> "CommandBuilder":
        """Apply a codec profile at the given quality level."""
        self._args.extend(profile.to_ffmpeg_args(quality))
        return self

    def video_codec(self, codec: str) -> "CommandBuilder":
        self._args.extend(["-c:v", codec])
        return self

    def option(self, flag: str, value: str) -> "CommandBuilder":
        self._args.extend([flag, value])
        return self

    def progress(self, target: str = "pipe:1") -> "CommandBuilder":
        """Request machine-readable progress on ``target``."""
        self._args.extend(["-progress", target])
        return self

    def output(self, path: str | Path) -> "CommandBuilder":
        """Set output file."""
        self._args.append(str(path))
        return self

    def build_args(self) -> list[str]:
        """Build and return command as argument list."""
        return list(self._args)


def _is_quality_level(quality: str) -> bool:
    """True if ``quality`` parses as an unsigned 8-bit integer."""
    return bool(_QUALITY_LEVEL_RE.fullmatch(quality)) and int(quality) <= 255


def _resolve_quality(
    quality: Optional[str],
    tiers: dict[str, str],
    default: str,
) -> str:
    if quality is None:
        return default
    if quality in tiers:
        return tiers[quality]
    if _is_quality_level(quality):
        return quality
    return default


def resolve_crf(quality: Optional[str]) -> str:
    """Map a named tier or raw level to a constant rate factor."""
    return _resolve_quality(quality, CRF_BY_TIER, DEFAULT_CRF)


def resolve_webp_quality(quality: Optional[str]) -> str:
    """Map a named tier or raw level to a libwebp quality."""
    return _resolve_quality(quality, WEBP_QUALITY_BY_TIER, DEFAULT_WEBP_QUALITY)


def build_video_args(
    request: ConversionRequest,
    source_duration: Optional[float] = None,
    progress_target: str = "pipe:1",
) -> list[str]:
    """Build transcoder arguments for a video (or audio) conversion.

    Args:
        request: The conversion parameters.
        source_duration: Natural duration of the input in seconds. Only
            consulted in compress mode; when unknown, no retiming is done.
        progress_target: Destination of the ``-progress`` report.

    Returns:
        Argument list, without the transcoder binary itself.
    """
    builder = CommandBuilder().input(request.input_path).overwrite()

    if request.duration is not None:
        if request.mode is DurationMode.COMPRESS:
            if source_duration:
                speed_factor = source_duration / request.duration
                builder.retime(speed_factor, request.dimensions)
        else:
            builder.limit_duration(request.duration)
    elif request.dimensions is not None:
        builder.scale(*request.dimensions)

    if request.fps is not None:
        builder.frame_rate(request.fps)

    if request.disable_audio:
        builder.no_audio()

    builder.codec(codec_profile_for(request.format), resolve_crf(request.quality))
    builder.progress(progress_target)
    builder.output(request.output_path)
    return builder.build_args()


def build_image_args(request: ConversionRequest) -> list[str]:
    """Build transcoder arguments for an image-to-image conversion."""
    builder = CommandBuilder().input(request.input_path)
    extension = request.output_extension
    size = request.dimensions

    if extension == "webp":
        builder.video_codec(VideoCodec.WEBP.value)
        builder.option("-quality", resolve_webp_quality(request.quality))
        if size is not None:
            builder.scale(*size)
    elif extension == "ico":
        builder.scale(*(size or DEFAULT_ICO_SIZE))
        builder.video_codec(VideoCodec.PNG.value)
    elif size is not None:
        builder.scale(*size)

    builder.overwrite()
    builder.output(request.output_path)
    return builder.build_args()


def build_conversion_args(
    request: ConversionRequest,
    source_duration: Optional[float] = None,
    progress_target: str = "pipe:1",
) -> list[str]:
    """Route to the image or video builder."""
    if request.is_image_conversion:
        return build_image_args(request)
    return build_video_args(request, source_duration, progress_target)
