"""Application configuration settings.

All configuration values are loaded from environment variables (.env file).
Every field has a default so the relay starts without any configuration.
"""

from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    PROJECT_NAME: str = "Media Relay"
    VERSION: str = "0.1.0"
    DEBUG: bool = False

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8080

    # Logging
    LOG_LEVEL: Optional[str] = None  # Falls back to DEBUG/INFO from DEBUG flag
    LOG_JSON: bool = True

    # Working directories
    UPLOAD_DIR: str = "./uploads"
    TRANSCODE_OUTPUT_DIR: str = "./transform_data"
    FALLBACK_UPLOAD_PATH: str = "./received_video.png"

    # FFmpeg
    FFMPEG_PATH: str = "ffmpeg"
    VIDEO_CODEC: str = "libx265"
    VIDEO_PRESET: str = "medium"
    VIDEO_CRF: int = 28
    AUDIO_CODEC: str = "aac"
    TARGET_CODEC_LABEL: str = "HEVC"
    TRANSCODE_TIMEOUT_SECONDS: float = 600.0

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

    @property
    def log_level(self) -> str:
        """Effective log level name."""
        if self.LOG_LEVEL:
            return self.LOG_LEVEL
        return "DEBUG" if self.DEBUG else "INFO"


settings = Settings()
