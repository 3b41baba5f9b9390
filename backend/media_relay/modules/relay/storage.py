"""Local filesystem storage for request artifacts.

Owns the two working directories: the upload directory holding decoded
client uploads and the output directory holding transcoded files. Nothing
here outlives a single request cycle.
"""

import logging
import os
from pathlib import Path
from typing import Union

from media_relay.modules.relay.exceptions import ArtifactExistsError, StorageError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class ArtifactStorage:
    """Create, read and delete temporary artifact files.

    Holds no state between calls. Exclusive creates let concurrent
    connections claim an intake path without a separate existence check.
    """

    def __init__(
        self,
        upload_dir: PathLike,
        output_dir: PathLike,
        output_extension: str = "mp4",
    ):
        self.upload_dir = Path(upload_dir)
        self.output_dir = Path(output_dir)
        self.output_extension = output_extension

    def ensure_directories(self) -> None:
        """Create the upload and output directories if missing."""
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def intake_path(self, file_name: str) -> Path:
        """Path a decoded upload is stored at."""
        return self.upload_dir / file_name

    def output_path(self, request_id: str) -> Path:
        """Transcode output path, unique per request."""
        return self.output_dir / f"{request_id}.{self.output_extension}"

    def create_and_write(self, path: PathLike, data: bytes, exclusive: bool = False) -> int:
        """Write ``data`` to ``path`` and flush it to disk.

        A partially written file is removed before the error is raised. A
        file that could not be opened is never touched.

        Args:
            path: File to create or truncate
            data: Bytes to write
            exclusive: Fail instead of truncating when ``path`` already exists

        Returns:
            Number of bytes written

        Raises:
            ArtifactExistsError: If ``exclusive`` is set and ``path`` exists
            StorageError: If opening, writing, flushing or removing the
                partial file fails
        """
        path = Path(path)
        try:
            f = open(path, "xb" if exclusive else "wb")
        except FileExistsError as e:
            raise ArtifactExistsError(f"{path} already exists", path=path, original=e) from e
        except OSError as e:
            raise StorageError(f"Failed to create {path}: {e}", path=path, original=e) from e

        try:
            with f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            try:
                path.unlink(missing_ok=True)
            except OSError as cleanup_error:
                raise StorageError(
                    f"Failed to remove partially written file {path}: {cleanup_error}",
                    path=path,
                    original=e,
                ) from cleanup_error
            raise StorageError(f"Failed to write {path}: {e}", path=path, original=e) from e

        logger.debug("Wrote %d bytes to %s", len(data), path)
        return len(data)

    def read_all(self, path: PathLike) -> bytes:
        """Read a whole file into memory.

        Raises:
            StorageError: If the file is missing or unreadable
        """
        path = Path(path)
        try:
            return path.read_bytes()
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}", path=path, original=e) from e

    def delete(self, path: PathLike) -> None:
        """Remove a file.

        Raises:
            StorageError: If the file is missing or cannot be removed
        """
        path = Path(path)
        try:
            path.unlink()
        except OSError as e:
            raise StorageError(f"Failed to delete {path}: {e}", path=path, original=e) from e

        logger.debug("Deleted %s", path)
