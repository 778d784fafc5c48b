"""Retrieval service: resolve public tokens to metadata and bytes."""

from __future__ import annotations

import logging

from earlbox.exceptions import BlobNotFound, StorageReadFailed
from earlbox.models.file_record import FileRecord
from earlbox.storage.blob_store import LocalBlobStore
from earlbox.storage.metadata_store import MetadataStore

logger = logging.getLogger(__name__)


class RetrievalService:
    """Read-only access to stored files by public token.

    A record whose blob has gone missing is reported exactly like a token
    that was never issued: both return ``None``.
    """

    def __init__(self, blob_store: LocalBlobStore, metadata_store: MetadataStore) -> None:
        self._blobs = blob_store
        self._metadata = metadata_store

    async def get_metadata(self, public_token: str) -> FileRecord | None:
        """Look up a record by token without touching the blob."""
        if not public_token:
            return None
        return await self._metadata.get_by_token(public_token)

    async def get_content(self, public_token: str) -> tuple[FileRecord, bytes] | None:
        """Return the record and its exact bytes, or None if unavailable.

        Raises:
            StorageReadFailed: If the blob exists but cannot be read, or its
                length no longer matches the record.
        """
        record = await self.get_metadata(public_token)
        if record is None:
            return None

        try:
            data = await self._blobs.read(record.storage_path)
        except BlobNotFound:
            logger.warning(
                "File %s has metadata but no blob at %s",
                record.public_token,
                record.storage_path,
            )
            return None

        if len(data) != record.size_bytes:
            logger.error(
                "Blob for %s is %d bytes, record says %d",
                record.public_token,
                len(data),
                record.size_bytes,
            )
            raise StorageReadFailed("Stored content does not match its recorded size")

        return record, data
