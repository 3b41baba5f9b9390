"""Pydantic schemas for relay wire messages."""

from enum import Enum

from pydantic import BaseModel, Field, field_validator


class StatusType(str, Enum):
    """Outcome carried by a status message."""
    SUCCESS = "success"
    ERROR = "error"


class UploadRequest(BaseModel):
    """Inbound text frame carrying an encoded video upload."""
    file_name: str = Field(..., description="Name the upload is stored under")
    video_data: str = Field(..., description="Base64 video data, optionally as a data URI")

    @field_validator("file_name")
    @classmethod
    def validate_file_name(cls, v: str) -> str:
        """File name must stay inside the upload directory."""
        if not v or not v.strip():
            raise ValueError("file_name must not be empty")
        if "/" in v or "\\" in v or "\x00" in v:
            raise ValueError("file_name must be a bare file name")
        if v in (".", ".."):
            raise ValueError("file_name must be a bare file name")
        return v


class StatusMessage(BaseModel):
    """Outbound text frame reporting request progress or failure."""
    status: StatusType
    message: str

    @classmethod
    def success(cls, message: str) -> "StatusMessage":
        return cls(status=StatusType.SUCCESS, message=message)

    @classmethod
    def error(cls, message: str) -> "StatusMessage":
        return cls(status=StatusType.ERROR, message=message)

    def to_wire(self) -> dict:
        """JSON-ready representation sent over the socket."""
        return self.model_dump(mode="json")
