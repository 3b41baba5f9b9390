"""FFmpeg transcoding.

Converts an uploaded video to HEVC by running ffmpeg as a child process of
the event loop, so a connection waiting on a transcode does not hold up any
other connection.
"""

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from typing import Optional

from media_relay.modules.relay.exceptions import (
    ProcessError,
    ProcessExitError,
    ProcessSpawnError,
    ProcessTimeoutError,
)

logger = logging.getLogger(__name__)


@dataclass
class FFmpegConfig:
    """Configuration for a single ffmpeg run."""
    input_path: str
    output_path: str
    video_codec: str = "libx265"
    preset: str = "medium"
    crf: int = 28
    audio_codec: str = "aac"
    timeout: Optional[float] = None  # seconds, None waits forever


@dataclass
class TranscodeOutput:
    """Result of transcoding operation."""
    success: bool
    output_path: str
    file_size: int = 0
    duration: float = 0.0  # wall clock seconds spent in ffmpeg
    error_message: Optional[str] = None
    error: Optional[ProcessError] = None

    @property
    def timed_out(self) -> bool:
        return isinstance(self.error, ProcessTimeoutError)


class FFmpegTranscoder:
    """FFmpeg-based HEVC transcoder."""

    def __init__(self, ffmpeg_path: str = "ffmpeg"):
        """Initialize transcoder.

        Args:
            ffmpeg_path: Path to ffmpeg binary
        """
        self.ffmpeg_path = ffmpeg_path

    def build_transcode_command(self, config: FFmpegConfig) -> list[str]:
        """Build FFmpeg command for transcoding.

        Args:
            config: Transcoding configuration

        Returns:
            FFmpeg command as list of arguments
        """
        cmd = [
            self.ffmpeg_path,
            "-y",  # Overwrite output
            "-i", config.input_path,
            # Video settings
            "-c:v", config.video_codec,
            "-preset", config.preset,
            "-crf", str(config.crf),
        ]

        # Players on Apple platforms only recognise HEVC tagged as hvc1
        if config.video_codec in ("libx265", "hevc", "hevc_videotoolbox", "hevc_nvenc"):
            cmd.extend(["-tag:v", "hvc1"])

        cmd.extend([
            # Audio settings
            "-c:a", config.audio_codec,
            config.output_path,
        ])

        return cmd

    async def transcode(self, config: FFmpegConfig) -> TranscodeOutput:
        """Transcode ``config.input_path`` into ``config.output_path``.

        Never raises for a failed conversion; the failure is described by
        the returned output instead. Cancelling the calling task kills ffmpeg.

        Args:
            config: Transcoding configuration

        Returns:
            TranscodeOutput with result
        """
        cmd = self.build_transcode_command(config)
        logger.debug("Running %s", " ".join(cmd))

        started = time.perf_counter()
        try:
            await self._run(cmd, config.timeout)
        except ProcessError as e:
            return TranscodeOutput(
                success=False,
                output_path=config.output_path,
                duration=time.perf_counter() - started,
                error_message=_diagnostic_text(e),
                error=e,
            )

        file_size = os.path.getsize(config.output_path) if os.path.exists(config.output_path) else 0

        return TranscodeOutput(
            success=True,
            output_path=config.output_path,
            file_size=file_size,
            duration=time.perf_counter() - started,
        )

    async def _run(self, cmd: list[str], timeout: Optional[float]) -> None:
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ProcessSpawnError(f"Failed to start {cmd[0]}: {e}") from e

        try:
            _, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            await _kill(process)
            raise ProcessTimeoutError(timeout) from None
        except asyncio.CancelledError:
            await _kill(process)
            raise

        if process.returncode != 0:
            raise ProcessExitError(
                process.returncode,
                stderr.decode("utf-8", errors="replace") if stderr else "",
            )


async def _kill(process: asyncio.subprocess.Process) -> None:
    """Kill a still running child and reap it."""
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
    await process.wait()


def _diagnostic_text(error: ProcessError) -> str:
    if isinstance(error, ProcessExitError):
        return error.stderr.strip() or str(error)
    return str(error)
