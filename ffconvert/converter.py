"""Host-facing conversion facade.

``MediaConverter`` owns one :class:`ConversionSession`, so at most one
conversion runs through it at a time. A host creates a single instance
for the lifetime of the process and wires its event sink to whatever
notification channel it uses.
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from .config import ConverterConfig
from .errors import (
    CommandFailedError,
    ConversionCancelledError,
    ConversionError,
    FFmpegNotFoundError,
)
from .events import CONVERSION_COMPLETE, IMAGE_CONVERSION_COMPLETE, EventSink, emit
from .executor.command_builder import (
    CommandBuilder,
    ConversionRequest,
    DurationMode,
    build_image_args,
    build_video_args,
)
from .executor.process_manager import ProcessManager
from .session import ConversionSession
from .video.analyzer import MediaAnalyzer, MediaInfo
from .video.formats import DEFAULT_WEBP_QUALITY, VideoCodec, supported_formats

logger = logging.getLogger("ffconvert")


class ConversionResult(BaseModel):
    """Outcome of a successful conversion."""
    model_config = ConfigDict(frozen=True)

    input_path: str
    output_path: str
    file_size: int


class MediaConverter:
    """Drives FFMPEG conversions for a host application."""

    def __init__(
        self,
        config: Optional[ConverterConfig] = None,
        *,
        event_sink: Optional[EventSink] = None,
        session: Optional[ConversionSession] = None,
        analyzer: Optional[MediaAnalyzer] = None,
        process_manager: Optional[ProcessManager] = None,
    ):
        """Initialize the converter.

        Args:
            config: Binary locations and runtime options.
            event_sink: Receives progress and completion events.
            session: Shared session state; a private one is created if
                omitted.
            analyzer: Media probe; built from ``config`` if omitted.
            process_manager: Transcoder runner; built from ``config`` if
                omitted.
        """
        self.config = config or ConverterConfig()
        self.event_sink = event_sink
        self.session = session or ConversionSession()

        ffmpeg_path = self.config.resolved_ffmpeg()
        self.analyzer = analyzer or MediaAnalyzer(
            ffmpeg_path, self.config.resolved_ffprobe()
        )
        self.process_manager = process_manager or ProcessManager(
            ffmpeg_path, terminate_timeout=self.config.terminate_timeout
        )

    async def ensure_ffmpeg(self) -> str:
        """Check the transcoder runs and return its version line.

        Raises:
            FFmpegNotFoundError: If it is missing or exits non-zero.
        """
        try:
            result = await self.process_manager.execute(["-version"])
        except FFmpegNotFoundError as e:
            raise FFmpegNotFoundError(
                f"{e}. Make sure FFmpeg is installed or bundled."
            ) from e

        if not result.success:
            raise FFmpegNotFoundError(
                "FFmpeg executable found but not working properly"
            )

        lines = result.stdout.splitlines()
        version = lines[0] if lines else "Unknown version"
        logger.info("FFmpeg found and working: %s", version)
        return version

    async def get_file_info(self, file_path: str | Path) -> MediaInfo:
        return await self.analyzer.get_media_info(file_path)

    async def start_conversion(self, request: ConversionRequest) -> ConversionResult:
        """Run one conversion end to end.

        Raises:
            ConversionBusyError: If another conversion is running.
            ConversionError: Any other failure of this attempt.
        """
        with self.session.claim():
            if request.is_image_conversion:
                result = await self._convert_image(request)
            else:
                result = await self._convert_video(request)

        logger.info("Media conversion completed successfully")
        emit(self.event_sink, CONVERSION_COMPLETE, result)
        return result

    def get_conversion_status(self) -> bool:
        return self.session.is_converting

    def cancel_conversion(self) -> None:
        """Ask the running conversion to stop and discard its output."""
        self.session.request_cancel()

    def get_supported_output_formats(self) -> list[str]:
        return supported_formats()

    async def convert_image_to_webp(self, input_path: str | Path) -> str:
        """Convert an image to WebP in the downloads directory.

        Returns:
            Path of the written file.
        """
        stem = Path(input_path).stem
        if not stem:
            raise ConversionError("Invalid input file path")

        downloads = Path(self.config.downloads_dir)
        downloads.mkdir(parents=True, exist_ok=True)
        output_path = downloads / f"{stem}.webp"

        args = (
            CommandBuilder()
            .input(input_path)
            .video_codec(VideoCodec.WEBP.value)
            .option("-quality", DEFAULT_WEBP_QUALITY)
            .overwrite()
            .output(output_path)
            .build_args()
        )
        result = await self.process_manager.execute(args)
        if not result.success:
            raise CommandFailedError(result.return_code, result.error_message)

        emit(self.event_sink, IMAGE_CONVERSION_COMPLETE, str(output_path))
        return str(output_path)

    async def get_file_stats(self, file_path: str | Path) -> dict[str, Any]:
        """Return ``size`` plus ``width``/``height`` when they can be read."""
        try:
            size = os.stat(file_path).st_size
        except OSError as e:
            raise ConversionError(f"Failed to get file metadata: {e}") from e

        try:
            info = await self.analyzer.get_media_info(file_path)
        except ConversionError:
            return {"size": size}
        return {"size": size, "width": info.width, "height": info.height}

    async def get_image_dimensions(self, path: str | Path) -> tuple[int, int]:
        width, height = await self.analyzer.get_dimensions(path)
        logger.debug("Image dimensions for %s: %dx%d", path, width, height)
        return width, height

    # ------------------------------------------------------------------
    # Conversion paths
    # ------------------------------------------------------------------

    async def _source_duration(self, input_path: str) -> Optional[float]:
        try:
            info = await self.analyzer.get_media_info(input_path)
        except ConversionError as e:
            logger.debug("Duration probe failed for %s: %s", input_path, e)
            return None
        return info.duration

    async def _convert_video(self, request: ConversionRequest) -> ConversionResult:
        source_duration = None
        compress = request.duration is not None and request.mode is DurationMode.COMPRESS
        if compress:
            source_duration = await self._source_duration(request.input_path)
            if source_duration is None:
                logger.warning(
                    "Source duration unknown for %s, skipping retiming",
                    request.input_path,
                )

        args = build_video_args(
            request, source_duration, self.config.progress_target
        )

        total_duration = None
        if request.mode is DurationMode.TRIM and request.duration is not None:
            total_duration = request.duration
        elif source_duration is not None:
            total_duration = source_duration

        duration_probe = None
        if not compress:
            duration_probe = lambda: self._source_duration(request.input_path)  # noqa: E731

        result = await self.process_manager.run_with_progress(
            args,
            request.output_path,
            self.session,
            total_duration=total_duration,
            duration_probe=duration_probe,
            event_sink=self.event_sink,
        )
        return ConversionResult(
            input_path=request.input_path,
            output_path=request.output_path,
            file_size=result.output_size or 0,
        )

    async def _convert_image(self, request: ConversionRequest) -> ConversionResult:
        args = build_image_args(request)
        result = await self.process_manager.execute(args)

        if self.session.is_cancelled:
            self.process_manager.discard_output(request.output_path)
            raise ConversionCancelledError()

        if not result.success:
            logger.error("Image conversion failed: %s", result.error_message)
            raise CommandFailedError(result.return_code, result.error_message)

        size = self.process_manager.verify_output(request.output_path)
        return ConversionResult(
            input_path=request.input_path,
            output_path=request.output_path,
            file_size=size,
        )
