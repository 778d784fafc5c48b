"""Ingestion service: validate an upload, store its bytes, record its metadata.

Flow for one upload:
1. Validate name, media type, size range and declared size
2. Draw an internal id and an independent public token
3. Write the bytes to ``<content_root>/<internal_id><ext>``
4. Insert the FileRecord

Steps 3 and 4 are not one transaction. If the insert fails, the blob from
step 3 is removed on a best-effort basis; a crash between the two steps can
still leave an orphan blob behind.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from uuid import UUID

from earlbox.config import settings
from earlbox.exceptions import (
    InvalidOriginalName,
    MetadataWriteFailed,
    PayloadTooLarge,
    SizeMismatch,
    UnsupportedMediaType,
)
from earlbox.ids import new_internal_id, new_public_token, stored_name_for
from earlbox.models.file_record import FileRecord
from earlbox.storage.blob_store import LocalBlobStore
from earlbox.storage.metadata_store import MetadataStore

logger = logging.getLogger(__name__)


def validate_upload(
    original_name: str,
    content_type: str,
    size_bytes: int,
    content_length: int,
    *,
    max_upload_bytes: int,
    accepted_media_prefixes: Sequence[str],
) -> None:
    """Check an upload request before anything is written.

    Checks run in a fixed order, so a request that is wrong in several ways
    always reports the same error.

    Args:
        original_name: Caller-supplied display name.
        content_type: Caller-supplied MIME type.
        size_bytes: Caller-declared size.
        content_length: Actual number of bytes received.
        max_upload_bytes: Largest accepted size (inclusive).
        accepted_media_prefixes: Content type prefixes that are allowed.

    Raises:
        InvalidOriginalName: If original_name is empty, blank, or contains
            control characters.
        UnsupportedMediaType: If content_type is empty or not accepted.
        PayloadTooLarge: If size_bytes is not in 1..max_upload_bytes.
        SizeMismatch: If content_length differs from size_bytes.
    """
    if not original_name or not original_name.strip():
        raise InvalidOriginalName("Original file name must not be empty")
    if any(ord(ch) < 32 or ord(ch) == 127 for ch in original_name):
        raise InvalidOriginalName("Original file name must not contain control characters")

    normalized = (content_type or "").strip().lower()
    if not normalized or not normalized.startswith(tuple(p.lower() for p in accepted_media_prefixes)):
        raise UnsupportedMediaType(content_type, accepted_media_prefixes)

    if size_bytes <= 0 or size_bytes > max_upload_bytes:
        raise PayloadTooLarge(size_bytes, max_upload_bytes)

    if content_length != size_bytes:
        raise SizeMismatch(size_bytes, content_length)


class IngestionService:
    """Turns validated uploads into stored blobs plus FileRecords.

    Usage:
        service = IngestionService(blob_store, metadata_store)
        record = await service.ingest("cat.png", "image/png", len(data), data)
        share(record.public_token)
    """

    def __init__(
        self,
        blob_store: LocalBlobStore,
        metadata_store: MetadataStore,
        *,
        max_upload_bytes: int | None = None,
        accepted_media_prefixes: Sequence[str] | None = None,
        public_token_bytes: int | None = None,
        internal_id_factory: Callable[[], UUID] = new_internal_id,
        token_factory: Callable[[int], str] = new_public_token,
    ) -> None:
        self._blobs = blob_store
        self._metadata = metadata_store
        self._max_upload_bytes = max_upload_bytes or settings.max_upload_bytes
        self._accepted = tuple(
            accepted_media_prefixes
            if accepted_media_prefixes is not None
            else settings.accepted_media_prefixes
        )
        self._token_bytes = public_token_bytes or settings.public_token_bytes
        self._new_internal_id = internal_id_factory
        self._new_token = token_factory

    @property
    def max_upload_bytes(self) -> int:
        return self._max_upload_bytes

    async def ingest(
        self,
        original_name: str,
        content_type: str,
        size_bytes: int,
        content: bytes,
    ) -> FileRecord:
        """Store an upload and return its committed FileRecord.

        Raises:
            UploadValidationError: If the request is invalid (nothing stored).
            StorageWriteFailed: If the bytes could not be written (no record).
            MetadataWriteFailed: If the record could not be inserted; the
                written blob is removed if possible.
        """
        validate_upload(
            original_name,
            content_type,
            size_bytes,
            len(content),
            max_upload_bytes=self._max_upload_bytes,
            accepted_media_prefixes=self._accepted,
        )

        internal_id = self._new_internal_id()
        public_token = self._new_token(self._token_bytes)
        stored_name = stored_name_for(internal_id, original_name)
        storage_path = self._blobs.path_for(stored_name)

        await self._blobs.write(storage_path, content)

        record = FileRecord(
            internal_id=internal_id,
            stored_name=stored_name,
            original_name=original_name,
            content_type=content_type,
            size_bytes=size_bytes,
            storage_path=storage_path,
            public_token=public_token,
        )
        try:
            record = await self._metadata.insert(record)
        except MetadataWriteFailed:
            await self._discard_orphan(storage_path)
            raise

        logger.info(
            "Stored %s (%s, %d bytes) as %s",
            original_name,
            content_type,
            size_bytes,
            public_token,
        )
        return record

    async def _discard_orphan(self, storage_path: str) -> None:
        # The metadata error is what the caller sees; cleanup failures are only logged
        try:
            await self._blobs.delete(storage_path)
        except OSError:
            logger.exception("Could not remove orphan blob %s", storage_path)
        else:
            logger.warning("Removed orphan blob %s after metadata insert failed", storage_path)
