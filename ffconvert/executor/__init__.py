"""FFMPEG command construction and execution modules."""

from .command_builder import (
    CommandBuilder,
    ConversionRequest,
    DurationMode,
    Filter,
    FilterChain,
    build_conversion_args,
)
from .process_manager import ProcessManager, ProcessResult
from .progress import ConversionProgress, parse_progress_line

__all__ = [
    "CommandBuilder",
    "ConversionProgress",
    "ConversionRequest",
    "DurationMode",
    "Filter",
    "FilterChain",
    "ProcessManager",
    "ProcessResult",
    "build_conversion_args",
    "parse_progress_line",
]
