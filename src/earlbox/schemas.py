"""Request/response schemas for the HTTP API.

Responses never carry the internal id or storage location of a file; the
public token is the only identifier clients see.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class FileOut(BaseModel):
    """Public metadata for a stored file."""

    model_config = ConfigDict(from_attributes=True)

    public_token: str
    original_name: str
    content_type: str
    size_bytes: int
    created_at: datetime


class FileDownloadOut(FileOut):
    """Metadata plus the base64 encoded content."""

    file_data: str


class Base64UploadIn(BaseModel):
    """JSON upload body with the file content base64 encoded."""

    original_name: str
    content_type: str
    size_bytes: int
    file_data: str = Field(description="Base64 encoded file content")


class FileStatsOut(BaseModel):
    total_files: int
    total_size_bytes: int
