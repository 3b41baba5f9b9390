"""Shared fixtures for relay tests."""

from pathlib import Path
from typing import Optional

import pytest

from media_relay.modules.relay.exceptions import ProcessError, ProcessExitError
from media_relay.modules.relay.ffmpeg import FFmpegConfig, FFmpegTranscoder, TranscodeOutput
from media_relay.modules.relay.session import PipelineConfig


class FakeTranscoder(FFmpegTranscoder):
    """Transcoder double writing canned output instead of running ffmpeg.

    Every call records the config and a snapshot of the upload and output
    directories taken when the transcode started.
    """

    def __init__(
        self,
        output: bytes = b"converted video",
        error: Optional[ProcessError] = None,
        write_output: bool = True,
    ):
        super().__init__(ffmpeg_path="ffmpeg")
        self.output = output
        self.error = error
        self.write_output = write_output
        self.calls: list[FFmpegConfig] = []
        self.inputs: list[bytes] = []
        self.snapshots: list[tuple[list[str], list[str]]] = []

    async def transcode(self, config: FFmpegConfig) -> TranscodeOutput:
        self.calls.append(config)
        input_path = Path(config.input_path)
        output_path = Path(config.output_path)
        self.inputs.append(input_path.read_bytes())
        self.snapshots.append((
            sorted(p.name for p in input_path.parent.iterdir()),
            sorted(p.name for p in output_path.parent.iterdir()),
        ))

        if self.error is not None:
            if self.write_output:
                output_path.write_bytes(b"half written")
            return TranscodeOutput(
                success=False,
                output_path=config.output_path,
                error_message=str(self.error),
                error=self.error,
            )

        if self.write_output:
            output_path.write_bytes(self.output)
        return TranscodeOutput(
            success=True,
            output_path=config.output_path,
            file_size=len(self.output),
        )


@pytest.fixture
def pipeline_config(tmp_path: Path) -> PipelineConfig:
    return PipelineConfig(
        upload_dir=str(tmp_path / "uploads"),
        output_dir=str(tmp_path / "transform_data"),
        fallback_upload_path=str(tmp_path / "received_video.png"),
        transcode_timeout=5.0,
    )


@pytest.fixture
def transcoder() -> FakeTranscoder:
    return FakeTranscoder()


@pytest.fixture
def failing_transcoder() -> FakeTranscoder:
    return FakeTranscoder(error=ProcessExitError(1, "Invalid data found when processing input"))


@pytest.fixture
def transcoder_factory() -> type[FakeTranscoder]:
    return FakeTranscoder
