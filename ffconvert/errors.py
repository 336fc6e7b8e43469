"""Failure types raised by the conversion engine.

Every failure is scoped to a single conversion attempt. Text-scraping
helpers never raise; a field they cannot read is simply left unset.
"""

from typing import Optional


class ConversionError(RuntimeError):
    """Base class for all conversion failures."""


class FFmpegNotFoundError(ConversionError):
    """The transcoder or probe binary is missing or cannot be executed."""


class ProbeError(ConversionError):
    """The structured probe failed or reported no usable stream."""


class ConversionBusyError(ConversionError):
    """Another conversion is already running."""

    def __init__(self, message: str = "A conversion is already in progress"):
        super().__init__(message)


class CommandFailedError(ConversionError):
    """The transcoder exited with a non-zero status."""

    def __init__(self, exit_code: Optional[int], detail: Optional[str] = None):
        message = f"FFmpeg conversion failed with exit code: {exit_code}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.exit_code = exit_code
        self.detail = detail


class OutputVerificationError(ConversionError):
    """The transcoder reported success but the output is missing or empty."""


class ConversionCancelledError(ConversionError):
    """The user cancelled the conversion; partial output has been removed."""

    def __init__(self, message: str = "Conversion cancelled by user"):
        super().__init__(message)
