"""FileRecord model: metadata for one uploaded file."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import BigInteger, CheckConstraint, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from earlbox.models.base import Base


class FileRecord(Base):
    """Metadata for an uploaded image or video.

    The bytes live in the blob store at ``storage_path``. The two are not
    transactionally linked, so a record may outlive its blob and a blob may
    exist without a record.

    Records are created once and never updated.
    """

    __tablename__ = "files"
    __table_args__ = (CheckConstraint("size_bytes > 0", name="ck_files_size_positive"),)

    internal_id: Mapped[UUID] = mapped_column(primary_key=True)
    stored_name: Mapped[str] = mapped_column(String(512))
    original_name: Mapped[str] = mapped_column(String(1024))
    content_type: Mapped[str] = mapped_column(String(255))
    size_bytes: Mapped[int] = mapped_column(BigInteger)
    storage_path: Mapped[str] = mapped_column(String(2048))
    public_token: Mapped[str] = mapped_column(String(128), unique=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return (
            f"FileRecord(public_token={self.public_token!r}, "
            f"original_name={self.original_name!r}, size_bytes={self.size_bytes})"
        )
