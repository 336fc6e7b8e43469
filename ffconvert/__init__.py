"""
ffconvert: FFMPEG conversion orchestration

Builds transcoder command lines, runs one conversion at a time while
streaming typed progress events, and scrapes media metadata from the
transcoder's diagnostic output.

Example usage:
    converter = MediaConverter(event_sink=JsonLinesEventSink())
    await converter.start_conversion(ConversionRequest(
        input_path="clip.mov", output_path="clip.webm", format="webm",
        quality="high", duration=10, duration_mode="compress",
    ))
"""

__version__ = "1.0.0"

from .config import ConverterConfig
from .converter import ConversionResult, MediaConverter
from .errors import (
    CommandFailedError,
    ConversionBusyError,
    ConversionCancelledError,
    ConversionError,
    FFmpegNotFoundError,
    OutputVerificationError,
    ProbeError,
)
from .events import JsonLinesEventSink
from .executor.command_builder import ConversionRequest, DurationMode
from .executor.progress import ConversionProgress
from .session import ConversionSession
from .video.analyzer import MediaInfo

__all__ = [
    "CommandFailedError",
    "ConversionBusyError",
    "ConversionCancelledError",
    "ConversionError",
    "ConversionProgress",
    "ConversionRequest",
    "ConversionResult",
    "ConversionSession",
    "ConverterConfig",
    "DurationMode",
    "FFmpegNotFoundError",
    "JsonLinesEventSink",
    "MediaConverter",
    "MediaInfo",
    "OutputVerificationError",
    "ProbeError",
]
