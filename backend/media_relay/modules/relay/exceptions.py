"""Errors raised inside the relay pipeline.

Every one of these is caught at the session boundary and reported to the
client as an error status message; none of them closes the connection.
"""

from pathlib import Path
from typing import Optional, Union


class RelayError(Exception):
    """Base class for relay pipeline errors."""


class ParseError(RelayError):
    """Inbound text frame is not a valid upload request."""


class DecodeError(RelayError):
    """Upload payload is not valid base64 text."""


class StorageError(RelayError):
    """Creating, writing, reading or deleting an artifact failed.

    ``original`` keeps the first failure when a later one (for example the
    removal of a partially written file) is the one being reported.
    """

    def __init__(
        self,
        message: str,
        path: Optional[Union[str, Path]] = None,
        original: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.path = str(path) if path is not None else None
        self.original = original


class ArtifactExistsError(StorageError):
    """An exclusive create found a file already at the path."""


class ProcessError(RelayError):
    """The external transcoder could not produce an output file."""


class ProcessSpawnError(ProcessError):
    """The transcoder executable could not be started."""


class ProcessExitError(ProcessError):
    """The transcoder exited with a non-zero status."""

    def __init__(self, returncode: int, stderr: str):
        super().__init__(f"Transcoder exited with status {returncode}")
        self.returncode = returncode
        self.stderr = stderr


class ProcessTimeoutError(ProcessError):
    """The transcoder did not finish within the allowed time."""

    def __init__(self, timeout: float):
        super().__init__(f"Transcoder did not finish within {timeout:g} seconds")
        self.timeout = timeout


class SendError(RelayError):
    """A frame could not be sent to the client."""
