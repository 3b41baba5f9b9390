"""Property-based tests for artifact storage.

**Feature: media-relay, Property 2: Artifact Storage**
"""

import os
import tempfile
from pathlib import Path

import pytest
from hypothesis import given, settings, strategies as st

from media_relay.modules.relay.exceptions import ArtifactExistsError, StorageError
from media_relay.modules.relay.storage import ArtifactStorage


@pytest.fixture
def storage(tmp_path: Path) -> ArtifactStorage:
    storage = ArtifactStorage(tmp_path / "uploads", tmp_path / "transform_data")
    storage.ensure_directories()
    return storage


class TestWriteThenRead:
    """Bytes written are the bytes read back."""

    @given(data=st.binary(max_size=4096))
    @settings(max_examples=50)
    def test_write_then_read_returns_same_bytes(self, data: bytes) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            storage = ArtifactStorage(Path(tmp) / "uploads", Path(tmp) / "out")
            storage.ensure_directories()
            path = storage.intake_path("clip.mp4")

            written = storage.create_and_write(path, data)

            assert written == len(data)
            assert storage.read_all(path) == data

    def test_existing_file_is_truncated(self, storage: ArtifactStorage) -> None:
        path = storage.intake_path("clip.mp4")
        storage.create_and_write(path, b"a much longer original content")
        storage.create_and_write(path, b"short")

        assert storage.read_all(path) == b"short"

    def test_exclusive_create_writes_new_file(self, storage: ArtifactStorage) -> None:
        path = storage.intake_path("clip.mp4")

        assert storage.create_and_write(path, b"frames", exclusive=True) == 6
        assert storage.read_all(path) == b"frames"


class TestPaths:
    """Artifact paths live inside the configured directories."""

    def test_intake_path_uses_file_name(self, storage: ArtifactStorage) -> None:
        assert storage.intake_path("clip.mp4") == storage.upload_dir / "clip.mp4"

    def test_output_path_is_unique_per_request(self, storage: ArtifactStorage) -> None:
        first = storage.output_path("req-1")
        second = storage.output_path("req-2")

        assert first != second
        assert first.parent == storage.output_dir
        assert first.suffix == ".mp4"

    def test_ensure_directories_creates_both(self, tmp_path: Path) -> None:
        storage = ArtifactStorage(tmp_path / "a" / "uploads", tmp_path / "b" / "out")
        storage.ensure_directories()

        assert storage.upload_dir.is_dir()
        assert storage.output_dir.is_dir()


class TestFailures:
    """Failures raise StorageError and leave no partial file behind."""

    def test_read_missing_file_fails(self, storage: ArtifactStorage) -> None:
        with pytest.raises(StorageError) as exc_info:
            storage.read_all(storage.intake_path("missing.mp4"))
        assert isinstance(exc_info.value.original, FileNotFoundError)

    def test_delete_missing_file_fails(self, storage: ArtifactStorage) -> None:
        with pytest.raises(StorageError):
            storage.delete(storage.intake_path("missing.mp4"))

    def test_delete_removes_file(self, storage: ArtifactStorage) -> None:
        path = storage.intake_path("clip.mp4")
        storage.create_and_write(path, b"data")

        storage.delete(path)

        assert not path.exists()

    def test_write_into_missing_directory_fails(self, tmp_path: Path) -> None:
        storage = ArtifactStorage(tmp_path / "never-created", tmp_path / "out")
        path = storage.intake_path("clip.mp4")

        with pytest.raises(StorageError):
            storage.create_and_write(path, b"data")
        assert not path.exists()

    def test_flush_failure_removes_partial_file(
        self,
        storage: ArtifactStorage,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def failing_fsync(fd: int) -> None:
            raise OSError("disk full")

        monkeypatch.setattr(os, "fsync", failing_fsync)
        path = storage.intake_path("clip.mp4")

        with pytest.raises(StorageError) as exc_info:
            storage.create_and_write(path, b"partial data")

        assert not path.exists()
        assert str(exc_info.value.original) == "disk full"
        assert exc_info.value.__cause__ is exc_info.value.original

    def test_failed_cleanup_is_reported_with_original_cause(
        self,
        storage: ArtifactStorage,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def failing_fsync(fd: int) -> None:
            raise OSError("disk full")

        def failing_unlink(self, missing_ok: bool = False) -> None:
            raise PermissionError("read-only directory")

        monkeypatch.setattr(os, "fsync", failing_fsync)
        monkeypatch.setattr(Path, "unlink", failing_unlink)
        path = storage.intake_path("clip.mp4")

        with pytest.raises(StorageError) as exc_info:
            storage.create_and_write(path, b"partial data")

        error = exc_info.value
        assert "remove" in str(error)
        assert isinstance(error.__cause__, PermissionError)
        assert str(error.original) == "disk full"


class TestExclusiveCreate:
    """Exclusive creates never touch a file that is already there."""

    def test_existing_file_is_kept(self, storage: ArtifactStorage) -> None:
        path = storage.intake_path("clip.mp4")
        path.write_bytes(b"other connection")

        with pytest.raises(ArtifactExistsError) as exc_info:
            storage.create_and_write(path, b"frames", exclusive=True)

        assert isinstance(exc_info.value, StorageError)
        assert isinstance(exc_info.value.original, FileExistsError)
        assert path.read_bytes() == b"other connection"

    def test_second_claim_on_same_path_loses(self, storage: ArtifactStorage) -> None:
        path = storage.intake_path("clip.mp4")
        storage.create_and_write(path, b"first", exclusive=True)

        with pytest.raises(ArtifactExistsError):
            storage.create_and_write(path, b"second", exclusive=True)
        assert storage.read_all(path) == b"first"

    @pytest.mark.parametrize("exclusive", [False, True])
    def test_overlong_name_fails_with_storage_error(
        self,
        storage: ArtifactStorage,
        exclusive: bool,
    ) -> None:
        path = storage.intake_path("v" * 296 + ".mp4")

        with pytest.raises(StorageError) as exc_info:
            storage.create_and_write(path, b"frames", exclusive=exclusive)

        assert not isinstance(exc_info.value, ArtifactExistsError)
        assert isinstance(exc_info.value.original, OSError)
        assert list(storage.upload_dir.iterdir()) == []
