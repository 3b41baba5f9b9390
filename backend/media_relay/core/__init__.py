"""Core module for configuration, logging and metrics."""

from media_relay.core.config import settings, Settings

__all__ = [
    "settings",
    "Settings",
]
