"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI, Response
from fastapi.responses import PlainTextResponse

from media_relay.core.config import Settings, settings as default_settings
from media_relay.core.logging import setup_logging
from media_relay.core.metrics import get_metrics, get_content_type, set_app_info
from media_relay.modules.relay import relay_router
from media_relay.modules.relay.ffmpeg import FFmpegTranscoder
from media_relay.modules.relay.session import PipelineConfig
from media_relay.modules.relay.storage import ArtifactStorage

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    pipeline_config: Optional[PipelineConfig] = None,
    transcoder: Optional[FFmpegTranscoder] = None,
) -> FastAPI:
    """Build the application.

    Args:
        settings: Application settings (module level settings if not provided)
        pipeline_config: Pipeline configuration (derived from settings if not provided)
        transcoder: Transcoder shared by all connections

    Returns:
        Configured FastAPI application
    """
    settings = settings or default_settings
    pipeline_config = pipeline_config or PipelineConfig.from_settings(settings)
    transcoder = transcoder or FFmpegTranscoder(ffmpeg_path=pipeline_config.ffmpeg_path)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Working directories must exist before the first upload arrives
        ArtifactStorage(pipeline_config.upload_dir, pipeline_config.output_dir).ensure_directories()
        Path(pipeline_config.fallback_upload_path).parent.mkdir(parents=True, exist_ok=True)
        logger.info(
            "Relay ready",
            extra={
                "upload_dir": pipeline_config.upload_dir,
                "output_dir": pipeline_config.output_dir,
            },
        )
        yield

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        description="WebSocket relay converting uploaded videos to HEVC.",
        lifespan=lifespan,
    )
    app.state.pipeline_config = pipeline_config
    app.state.transcoder = transcoder

    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    @app.get("/metrics", response_class=PlainTextResponse, tags=["health"])
    async def prometheus_metrics() -> Response:
        """Prometheus metrics in text exposition format."""
        return Response(content=get_metrics(), media_type=get_content_type())

    app.include_router(relay_router)

    return app


setup_logging(
    level=default_settings.log_level,
    json_format=default_settings.LOG_JSON,
    include_stack_trace=True,
)

set_app_info(
    version=default_settings.VERSION,
    environment="development" if default_settings.DEBUG else "production",
)

app = create_app()


def run() -> None:
    """Serve the application with uvicorn."""
    logger.info("Started running server on port %d", default_settings.PORT)
    uvicorn.run(
        app,
        host=default_settings.HOST,
        port=default_settings.PORT,
        log_config=None,
    )
