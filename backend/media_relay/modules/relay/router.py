"""Relay router exposing the WebSocket upload endpoint."""

import logging

from fastapi import APIRouter, Depends, WebSocket

from media_relay.modules.relay.ffmpeg import FFmpegTranscoder
from media_relay.modules.relay.session import PipelineConfig, RelaySession
from media_relay.modules.relay.storage import ArtifactStorage

logger = logging.getLogger(__name__)

router = APIRouter(tags=["relay"])


def get_pipeline_config(websocket: WebSocket) -> PipelineConfig:
    """Dependency for the pipeline configuration injected at startup."""
    return websocket.app.state.pipeline_config


def get_transcoder(websocket: WebSocket) -> FFmpegTranscoder:
    """Dependency for the shared transcoder."""
    return websocket.app.state.transcoder


def get_storage(config: PipelineConfig = Depends(get_pipeline_config)) -> ArtifactStorage:
    """Dependency for artifact storage."""
    return ArtifactStorage(config.upload_dir, config.output_dir)


@router.websocket("/ws")
async def relay_socket(
    websocket: WebSocket,
    config: PipelineConfig = Depends(get_pipeline_config),
    transcoder: FFmpegTranscoder = Depends(get_transcoder),
    storage: ArtifactStorage = Depends(get_storage),
) -> None:
    """Accept a connection and serve uploads on it until it closes.

    Text frames carry ``{"file_name": ..., "video_data": ...}`` uploads which
    are converted and returned as a binary frame; raw binary frames are
    stored at the fallback path.
    """
    logger.info("Accessed /ws from %s", websocket.client.host if websocket.client else "unknown")
    await websocket.accept()

    session = RelaySession(websocket, config, transcoder, storage=storage)
    await session.run()
