"""Relay module for WebSocket video uploads.

Decodes uploaded payloads, converts them to HEVC with ffmpeg and streams the
result back over the same connection, removing every temporary file once a
request is done.
"""

from media_relay.modules.relay.decoder import decode_payload
from media_relay.modules.relay.exceptions import (
    RelayError,
    ParseError,
    DecodeError,
    StorageError,
    ArtifactExistsError,
    ProcessError,
    ProcessSpawnError,
    ProcessExitError,
    ProcessTimeoutError,
    SendError,
)
from media_relay.modules.relay.ffmpeg import FFmpegConfig, FFmpegTranscoder, TranscodeOutput
from media_relay.modules.relay.schemas import StatusMessage, StatusType, UploadRequest
from media_relay.modules.relay.session import PipelineConfig, RelaySession, SessionState
from media_relay.modules.relay.storage import ArtifactStorage
from media_relay.modules.relay.router import router as relay_router

__all__ = [
    "decode_payload",
    "RelayError",
    "ParseError",
    "DecodeError",
    "StorageError",
    "ArtifactExistsError",
    "ProcessError",
    "ProcessSpawnError",
    "ProcessExitError",
    "ProcessTimeoutError",
    "SendError",
    "FFmpegConfig",
    "FFmpegTranscoder",
    "TranscodeOutput",
    "StatusMessage",
    "StatusType",
    "UploadRequest",
    "PipelineConfig",
    "RelaySession",
    "SessionState",
    "ArtifactStorage",
    "relay_router",
]
