"""Media Relay Backend Application.

A WebSocket service that accepts encoded video uploads, converts them to HEVC
with ffmpeg and streams the result back over the same connection.

Modules:
    - core: Configuration, structured logging, Prometheus metrics
    - modules.relay: Payload decoding, artifact storage, ffmpeg invocation
      and the per-connection session protocol
"""

__version__ = "0.1.0"
