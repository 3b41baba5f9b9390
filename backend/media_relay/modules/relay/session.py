"""Per-connection relay session.

A session reads frames from one WebSocket and handles them strictly one at a
time: an upload is decoded, stored, transcoded, delivered and cleaned up
before the next frame is read. Failures of a single upload are reported to
the client as an error status and never end the connection; only a close
frame or a broken transport does.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from fastapi import WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError

from media_relay.core.config import Settings
from media_relay.core.logging import (
    log_error,
    log_info,
    log_warning,
    new_correlation_id,
    set_request_id,
    set_session_id,
)
from media_relay.core.metrics import (
    CONNECTIONS_ACTIVE,
    TRANSCODE_DURATION_SECONDS,
    TRANSCODE_FAILURES_TOTAL,
    record_request,
)
from media_relay.modules.relay.decoder import decode_payload
from media_relay.modules.relay.exceptions import (
    ArtifactExistsError,
    DecodeError,
    ParseError,
    ProcessExitError,
    ProcessSpawnError,
    ProcessTimeoutError,
    SendError,
    StorageError,
)
from media_relay.modules.relay.ffmpeg import FFmpegConfig, FFmpegTranscoder
from media_relay.modules.relay.schemas import StatusMessage, UploadRequest
from media_relay.modules.relay.storage import ArtifactStorage

logger = logging.getLogger(__name__)

# Client facing error messages
INVALID_REQUEST_MESSAGE = "Invalid request format."
DECODE_FAILED_MESSAGE = "Failed to decode video data."
SAVE_FAILED_MESSAGE = "Failed to save video data."
BINARY_SAVE_FAILED_MESSAGE = "Failed to save binary data."
TRANSCODE_FAILED_MESSAGE = "Failed to convert video."
TRANSCODE_TIMEOUT_MESSAGE = "Video conversion timed out."
DELIVERY_FAILED_MESSAGE = "Failed to read converted video."


class SessionState(str, Enum):
    """Where a session is in its request cycle."""
    IDLE = "idle"
    AWAITING_MESSAGE = "awaiting_message"
    DECODING = "decoding"
    PERSISTING = "persisting"
    NOTIFYING_PROGRESS = "notifying_progress"
    TRANSCODING = "transcoding"
    DELIVERING = "delivering"
    CLEANING_UP = "cleaning_up"
    CLOSED = "closed"


@dataclass
class PipelineConfig:
    """Settings a session needs, resolved once at startup."""
    upload_dir: str = "./uploads"
    output_dir: str = "./transform_data"
    fallback_upload_path: str = "./received_video.png"
    ffmpeg_path: str = "ffmpeg"
    video_codec: str = "libx265"
    video_preset: str = "medium"
    video_crf: int = 28
    audio_codec: str = "aac"
    target_codec_label: str = "HEVC"
    transcode_timeout: Optional[float] = 600.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "PipelineConfig":
        return cls(
            upload_dir=settings.UPLOAD_DIR,
            output_dir=settings.TRANSCODE_OUTPUT_DIR,
            fallback_upload_path=settings.FALLBACK_UPLOAD_PATH,
            ffmpeg_path=settings.FFMPEG_PATH,
            video_codec=settings.VIDEO_CODEC,
            video_preset=settings.VIDEO_PRESET,
            video_crf=settings.VIDEO_CRF,
            audio_codec=settings.AUDIO_CODEC,
            target_codec_label=settings.TARGET_CODEC_LABEL,
            transcode_timeout=settings.TRANSCODE_TIMEOUT_SECONDS or None,
        )

    def ffmpeg_config(self, input_path: Path, output_path: Path) -> FFmpegConfig:
        """Build the ffmpeg run for one request."""
        return FFmpegConfig(
            input_path=str(input_path),
            output_path=str(output_path),
            video_codec=self.video_codec,
            preset=self.video_preset,
            crf=self.video_crf,
            audio_codec=self.audio_codec,
            timeout=self.transcode_timeout,
        )


class RelaySession:
    """State machine serving a single WebSocket connection."""

    def __init__(
        self,
        websocket: WebSocket,
        config: PipelineConfig,
        transcoder: FFmpegTranscoder,
        storage: Optional[ArtifactStorage] = None,
        session_id: Optional[str] = None,
    ):
        """Initialize session.

        Args:
            websocket: Accepted WebSocket connection
            config: Pipeline configuration
            transcoder: Transcoder used for every upload on this connection
            storage: Artifact storage (built from ``config`` if not provided)
            session_id: Correlation ID for logs (generated if not provided)
        """
        self.websocket = websocket
        self.config = config
        self.transcoder = transcoder
        self.storage = storage or ArtifactStorage(config.upload_dir, config.output_dir)
        self.session_id = session_id or new_correlation_id()
        self.state = SessionState.IDLE

    async def run(self) -> None:
        """Serve frames until the client closes or the transport breaks."""
        set_session_id(self.session_id)
        CONNECTIONS_ACTIVE.inc()
        log_info(logger, "Session opened")
        try:
            while True:
                self._transition(SessionState.AWAITING_MESSAGE)
                message = await self._receive()
                if message is None:
                    break

                if message.get("text") is not None:
                    await self.handle_text(message["text"])
                elif message.get("bytes") is not None:
                    await self.handle_binary(message["bytes"])
        finally:
            self._transition(SessionState.CLOSED)
            CONNECTIONS_ACTIVE.dec()
            log_info(logger, "Session closed")

    async def handle_text(self, raw: str) -> None:
        """Handle a text frame carrying an upload request."""
        request_id = new_correlation_id()
        set_request_id(request_id)
        try:
            try:
                request = self.parse_request(raw)
            except ParseError as e:
                log_warning(logger, "Rejecting malformed request", reason=str(e))
                record_request("parse_error")
                await self._report_error(INVALID_REQUEST_MESSAGE)
                return

            log_info(
                logger,
                "Received upload",
                file_name=request.file_name,
                payload_size=len(request.video_data),
            )
            outcome = await self.process_upload(request, request_id)
            record_request(outcome)
        finally:
            set_request_id(None)

    async def handle_binary(self, data: bytes) -> None:
        """Store a raw binary frame at the fallback path as is."""
        set_request_id(new_correlation_id())
        path = self.config.fallback_upload_path
        try:
            self._transition(SessionState.PERSISTING)
            try:
                await run_in_threadpool(self.storage.create_and_write, path, data)
            except StorageError as e:
                log_error(logger, "Failed to store binary upload", exception=e, path=path)
                record_request("binary_error")
                await self._report_error(BINARY_SAVE_FAILED_MESSAGE)
                return

            log_info(logger, "Stored binary upload", path=path, size=len(data))
            record_request("binary_stored")
        finally:
            set_request_id(None)

    @staticmethod
    def parse_request(raw: str) -> UploadRequest:
        """Parse a text frame into an upload request.

        Raises:
            ParseError: If the frame is not a valid upload request
        """
        try:
            return UploadRequest.model_validate_json(raw)
        except ValidationError as e:
            raise ParseError(f"Invalid upload request: {e.error_count()} error(s)") from e

    async def process_upload(self, request: UploadRequest, request_id: Optional[str] = None) -> str:
        """Run one upload through decode, store, transcode and delivery.

        Args:
            request: Parsed upload request
            request_id: ID naming the transcode output (generated if not provided)

        Returns:
            Outcome label of the request cycle
        """
        self._transition(SessionState.DECODING)
        try:
            data = decode_payload(request.video_data)
        except DecodeError as e:
            log_warning(logger, "Failed to decode upload", file_name=request.file_name, reason=str(e))
            await self._report_error(DECODE_FAILED_MESSAGE)
            return "decode_error"

        self._transition(SessionState.PERSISTING)
        request_id = request_id or new_correlation_id()
        intake_path = self.storage.intake_path(request.file_name)
        output_path = self.storage.output_path(request_id)

        try:
            await run_in_threadpool(self.storage.create_and_write, intake_path, data, True)
        except ArtifactExistsError:
            log_warning(logger, "Upload with the same name is in flight", path=str(intake_path))
            await self._report_error(f"File {request.file_name} is already being processed.")
            return "conflict"
        except StorageError as e:
            log_error(logger, "Failed to save upload", exception=e, path=str(intake_path))
            await self._report_error(SAVE_FAILED_MESSAGE)
            return "save_error"

        log_info(logger, "Saved upload", path=str(intake_path), size=len(data))

        try:
            return await self._transcode_and_deliver(intake_path, output_path)
        finally:
            self._transition(SessionState.CLEANING_UP)
            await self._cleanup(intake_path, output_path)

    async def _transcode_and_deliver(self, intake_path: Path, output_path: Path) -> str:
        self._transition(SessionState.NOTIFYING_PROGRESS)
        try:
            await self._send_status(
                StatusMessage.success(f"Converting video to {self.config.target_codec_label}")
            )
        except SendError as e:
            log_warning(logger, "Client unreachable, skipping transcode", reason=str(e))
            return "send_error"

        self._transition(SessionState.TRANSCODING)
        result = await self.transcoder.transcode(
            self.config.ffmpeg_config(intake_path, output_path)
        )
        TRANSCODE_DURATION_SECONDS.observe(result.duration)

        if not result.success:
            TRANSCODE_FAILURES_TOTAL.labels(reason=_failure_reason(result.error)).inc()
            log_error(
                logger,
                "Transcode failed",
                input_path=str(intake_path),
                diagnostic=result.error_message,
            )
            await self._report_error(
                TRANSCODE_TIMEOUT_MESSAGE if result.timed_out else TRANSCODE_FAILED_MESSAGE
            )
            return "transcode_error"

        log_info(
            logger,
            "Transcode finished",
            output_path=result.output_path,
            duration=result.duration,
            file_size=result.file_size,
        )

        self._transition(SessionState.DELIVERING)
        try:
            payload = await run_in_threadpool(self.storage.read_all, result.output_path)
        except StorageError as e:
            log_error(logger, "Failed to read transcoded output", exception=e)
            await self._report_error(DELIVERY_FAILED_MESSAGE)
            return "delivery_error"

        try:
            await self._send_bytes(payload)
        except SendError as e:
            log_warning(logger, "Failed to deliver transcoded video", reason=str(e))
            return "send_error"

        log_info(logger, "Delivered transcoded video", size=len(payload))
        return "delivered"

    async def _cleanup(self, intake_path: Path, output_path: Path) -> None:
        """Remove both artifacts of a request; failures are only logged."""
        for path in (intake_path, output_path):
            try:
                await run_in_threadpool(self.storage.delete, path)
            except StorageError as e:
                if path == output_path and isinstance(e.original, FileNotFoundError):
                    logger.debug("No transcode output to remove at %s", path)
                    continue
                log_warning(logger, "Failed to remove artifact", path=str(path), reason=str(e))

    async def _receive(self) -> Optional[dict]:
        """Next frame, or None once the connection is gone."""
        try:
            message = await self.websocket.receive()
        except (WebSocketDisconnect, RuntimeError, OSError) as e:
            log_warning(logger, "Connection lost while waiting for a frame", reason=str(e))
            return None

        if message["type"] == "websocket.disconnect":
            return None
        return message

    async def _send_status(self, status: StatusMessage) -> None:
        try:
            await self.websocket.send_json(status.to_wire())
        except (WebSocketDisconnect, RuntimeError, OSError) as e:
            raise SendError(f"Failed to send status: {e}") from e

    async def _send_bytes(self, data: bytes) -> None:
        try:
            await self.websocket.send_bytes(data)
        except (WebSocketDisconnect, RuntimeError, OSError) as e:
            raise SendError(f"Failed to send {len(data)} bytes: {e}") from e

    async def _report_error(self, message: str) -> None:
        """Send an error status; a failed send is logged and dropped."""
        try:
            await self._send_status(StatusMessage.error(message))
        except SendError as e:
            log_warning(logger, "Failed to report error to client", error_message=message, reason=str(e))

    def _transition(self, state: SessionState) -> None:
        logger.debug("Session %s: %s -> %s", self.session_id, self.state.value, state.value)
        self.state = state


def _failure_reason(error: Optional[Exception]) -> str:
    if isinstance(error, ProcessSpawnError):
        return "spawn"
    if isinstance(error, ProcessExitError):
        return "exit"
    if isinstance(error, ProcessTimeoutError):
        return "timeout"
    return "unknown"
