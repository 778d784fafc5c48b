"""Error taxonomy for EarlBox.

Validation errors are caller-correctable and leave no state behind.
Storage faults are infrastructure failures reported as opaque errors.
"Not found" is not an exception: lookups return ``None``.
"""

from __future__ import annotations


class EarlBoxError(Exception):
    """Base class for all EarlBox errors."""

    code = "earlbox_error"


# ── Validation ──────────────────────────────────────────────────────────────


class UploadValidationError(EarlBoxError):
    """The upload request is invalid and was rejected before any write."""

    code = "invalid_upload"


class InvalidOriginalName(UploadValidationError):
    code = "invalid_original_name"


class UnsupportedMediaType(UploadValidationError):
    code = "unsupported_media_type"

    def __init__(self, content_type: str, accepted: list[str] | tuple[str, ...]) -> None:
        self.content_type = content_type
        self.accepted = tuple(accepted)
        super().__init__(
            f"Content type {content_type!r} is not accepted "
            f"(expected one of: {', '.join(self.accepted)})"
        )


class PayloadTooLarge(UploadValidationError):
    code = "payload_too_large"

    def __init__(self, size_bytes: int, max_bytes: int) -> None:
        self.size_bytes = size_bytes
        self.max_bytes = max_bytes
        super().__init__(f"Size {size_bytes} is outside the accepted range 1..{max_bytes} bytes")


class SizeMismatch(UploadValidationError):
    code = "size_mismatch"

    def __init__(self, declared: int, actual: int) -> None:
        self.declared = declared
        self.actual = actual
        super().__init__(f"Declared size {declared} does not match content length {actual}")


# ── Storage faults ──────────────────────────────────────────────────────────


class StorageFault(EarlBoxError):
    """An infrastructure failure in the blob or metadata medium."""

    code = "storage_fault"


class StorageWriteFailed(StorageFault):
    code = "storage_write_failed"


class StorageReadFailed(StorageFault):
    code = "storage_read_failed"


class MetadataWriteFailed(StorageFault):
    code = "metadata_write_failed"


class BlobNotFound(StorageFault):
    """The blob medium has nothing at the requested path.

    Internal to the storage layer: retrieval turns this into a ``None`` result.
    """

    code = "blob_not_found"
