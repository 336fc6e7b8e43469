"""Process management for FFMPEG execution."""

import asyncio
import logging
import os
import re
import shlex
from collections import deque
from contextlib import aclosing
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, Optional

from ..errors import (
    CommandFailedError,
    ConversionCancelledError,
    ConversionError,
    FFmpegNotFoundError,
    OutputVerificationError,
)
from ..events import CONVERSION_PROGRESS, EventSink, emit
from ..session import ConversionSession
from .progress import PROGRESS_END, parse_progress_line

logger = logging.getLogger("ffconvert")

STDERR_TAIL_LINES = 50
_READ_CHUNK = 4096
# FFMPEG redraws its stats line with bare carriage returns.
_LINE_BREAK_RE = re.compile(rb"\r\n|\r|\n")

DurationProbe = Callable[[], Awaitable[Optional[float]]]


@dataclass
class ProcessResult:
    """Result of an FFMPEG process execution."""
    success: bool
    return_code: int
    stdout: str
    stderr: str
    command: str
    output_path: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def output_size(self) -> Optional[int]:
        """Get output file size if available."""
        if self.output_path and Path(self.output_path).exists():
            return Path(self.output_path).stat().st_size
        return None


async def _iter_lines(stream: asyncio.StreamReader) -> AsyncIterator[str]:
    """Yield decoded lines split on ``\\n`` or ``\\r`` until EOF."""
    pending = b""
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            break
        *lines, pending = _LINE_BREAK_RE.split(pending + chunk)
        for line in lines:
            yield line.decode("utf-8", errors="replace")
    if pending:
        yield pending.decode("utf-8", errors="replace")


class ProcessManager:
    """Runs the transcoder and supervises its output streams."""

    def __init__(self, ffmpeg_path: str = "ffmpeg", terminate_timeout: float = 5.0):
        """Initialize process manager.

        Args:
            ffmpeg_path: Path to the ffmpeg executable.
            terminate_timeout: Seconds to wait for a terminated child
                before killing it.
        """
        self.ffmpeg_path = ffmpeg_path
        self.terminate_timeout = terminate_timeout

    async def _spawn(self, cmd: list[str]) -> asyncio.subprocess.Process:
        try:
            return await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise FFmpegNotFoundError(f"Failed to start FFmpeg: {e}") from e

    async def execute(self, args: list[str]) -> ProcessResult:
        """Run the transcoder to completion and capture both streams.

        Args:
            args: Arguments following the binary.

        Returns:
            ProcessResult with execution details.

        Raises:
            FFmpegNotFoundError: If the binary cannot be started.
        """
        cmd = [self.ffmpeg_path, *args]
        cmd_string = shlex.join(cmd)
        logger.debug("Running: %s", cmd_string)

        process = await self._spawn(cmd)
        stdout, stderr = await process.communicate()

        stderr_str = stderr.decode("utf-8", errors="replace")
        success = process.returncode == 0
        return ProcessResult(
            success=success,
            return_code=process.returncode,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr_str,
            command=cmd_string,
            error_message=None if success else self._parse_error(stderr_str),
        )

    async def run_with_progress(
        self,
        args: list[str],
        output_path: str | Path,
        session: ConversionSession,
        *,
        total_duration: Optional[float] = None,
        duration_probe: Optional[DurationProbe] = None,
        event_sink: Optional[EventSink] = None,
    ) -> ProcessResult:
        """Run a progress-reporting conversion and verify its output.

        Args:
            args: Arguments following the binary; must request progress
                on stdout.
            output_path: File the transcoder writes.
            session: Source of the cancellation flag.
            total_duration: Expected output length in seconds, if known.
            duration_probe: Called after spawn when ``total_duration`` is
                not given; ``None`` from it disables percentages.
            event_sink: Receives one ``conversion-progress`` event per
                informative progress line.

        Returns:
            ProcessResult of the successful run.

        Raises:
            FFmpegNotFoundError: If the binary cannot be started.
            ConversionCancelledError: If cancellation was requested.
            CommandFailedError: If the transcoder exited non-zero.
            OutputVerificationError: If the output is missing or empty.
        """
        cmd = [self.ffmpeg_path, *args]
        cmd_string = shlex.join(cmd)
        logger.info("FFmpeg command: %s", cmd_string)

        process = await self._spawn(cmd)
        stderr_tail: deque[str] = deque(maxlen=STDERR_TAIL_LINES)

        try:
            stderr_task = asyncio.create_task(
                self._read_diagnostics(process.stderr, stderr_tail)
            )

            if total_duration is None and duration_probe is not None:
                total_duration = await self._probe_duration(duration_probe)

            stdout_task = asyncio.create_task(
                self._read_progress(process, session, total_duration, event_sink)
            )

            return_code = await process.wait()
            await asyncio.gather(stdout_task, stderr_task)
        except BaseException:
            await self._terminate(process)
            raise

        if session.is_cancelled:
            self.discard_output(output_path)
            raise ConversionCancelledError()

        stderr_str = "\n".join(stderr_tail)
        if return_code != 0:
            logger.error("FFmpeg failed with exit code: %s", return_code)
            detail = self._parse_error(stderr_str) if stderr_tail else None
            raise CommandFailedError(return_code, detail)

        size = self.verify_output(output_path)
        logger.info(
            "Conversion completed successfully. Output file size: %d bytes", size
        )

        return ProcessResult(
            success=True,
            return_code=return_code,
            stdout="",
            stderr=stderr_str,
            command=cmd_string,
            output_path=str(output_path),
        )

    async def _probe_duration(self, duration_probe: DurationProbe) -> Optional[float]:
        try:
            return await duration_probe()
        except ConversionError as e:
            logger.warning("Could not determine total duration: %s", e)
            return None

    async def _read_progress(
        self,
        process: asyncio.subprocess.Process,
        session: ConversionSession,
        total_duration: Optional[float],
        event_sink: Optional[EventSink],
    ) -> None:
        """Forward progress lines from stdout until end, EOF or cancel."""
        async with aclosing(_iter_lines(process.stdout)) as lines:
            async for line in lines:
                if session.is_cancelled:
                    logger.info("Cancellation observed, stopping transcoder")
                    await self._terminate(process)
                    break

                text = line.strip()
                logger.debug("FFmpeg stdout: %s", text)

                progress = parse_progress_line(text, total_duration)
                if progress is not None:
                    emit(event_sink, CONVERSION_PROGRESS, progress)

                if PROGRESS_END in text:
                    logger.info("Transcoder reported end of progress")
                    break

    async def _read_diagnostics(
        self,
        stream: asyncio.StreamReader,
        tail: deque[str],
    ) -> None:
        async for line in _iter_lines(stream):
            if not line.strip():
                continue
            logger.debug("FFmpeg stderr: %s", line)
            tail.append(line)

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        """Stop the child, escalating to kill after ``terminate_timeout``."""
        if process.returncode is not None:
            return
        try:
            process.terminate()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(process.wait(), timeout=self.terminate_timeout)
        except asyncio.TimeoutError:
            logger.warning("FFmpeg did not exit after terminate, killing it")
            try:
                process.kill()
            except ProcessLookupError:
                return
            await process.wait()

    def discard_output(self, output_path: str | Path) -> None:
        try:
            os.remove(output_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not remove partial output %s: %s", output_path, e)

    def verify_output(self, output_path: str | Path) -> int:
        """Return the output size, raising if it is missing or empty."""
        try:
            size = os.path.getsize(output_path)
        except OSError:
            raise OutputVerificationError("Output file was not created")
        if size == 0:
            raise OutputVerificationError(
                "Output file is empty - conversion may have failed"
            )
        return size

    def _parse_error(self, stderr: str) -> str:
        """Extract meaningful error message from ffmpeg stderr."""
        lines = stderr.strip().split("\n")

        # Look for common error patterns
        error_patterns = [
            r"Error.*",
            r"Invalid.*",
            r"No such file.*",
            r".*not found.*",
            r"Permission denied.*",
            r"Discarding.*",
        ]

        for line in reversed(lines):
            for pattern in error_patterns:
                if re.search(pattern, line, re.IGNORECASE):
                    return line.strip()

        # Return last non-empty line if no pattern matched
        for line in reversed(lines):
            if line.strip():
                return line.strip()

        return "Unknown error"
