"""Application modules.

This package contains the feature modules of the relay:
- relay: WebSocket upload, HEVC transcoding and delivery pipeline
"""
