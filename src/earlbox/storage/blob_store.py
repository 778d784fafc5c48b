"""Local filesystem blob store.

Blobs are immutable files under a content root, named
``<internal_id><original extension>``. The store knows nothing about
metadata; records point at blobs through their ``storage_path``.
"""

from __future__ import annotations

import errno
import logging
import secrets
from pathlib import Path

import aiofiles
import aiofiles.os

from earlbox.exceptions import BlobNotFound, StorageReadFailed, StorageWriteFailed

logger = logging.getLogger(__name__)


class LocalBlobStore:
    """Reads and writes raw bytes below a content root directory.

    Usage:
        store = LocalBlobStore(settings.content_root)
        path = store.path_for("4f1c...e2.png")
        await store.write(path, data)
        data = await store.read(path)
    """

    def __init__(self, content_root: str | Path) -> None:
        self._root = Path(content_root).expanduser().resolve()

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, stored_name: str) -> str:
        """Absolute storage path for a stored name.

        Raises:
            StorageWriteFailed: If the name would escape the content root.
        """
        path = self._root / stored_name
        if path.parent != self._root:
            raise StorageWriteFailed(f"Stored name {stored_name!r} does not resolve inside the content root")
        return str(path)

    async def write(self, storage_path: str, data: bytes) -> None:
        """Write bytes to storage_path, creating parent directories.

        Data goes to a temporary sibling first and is renamed into place,
        so readers never observe a partially written blob.

        Raises:
            StorageWriteFailed: On any filesystem error, or if the bytes on
                disk do not match len(data) after the write.
        """
        path = Path(storage_path)
        tmp_path = path.with_name(f".{path.name}.{secrets.token_hex(4)}.part")
        try:
            await aiofiles.os.makedirs(path.parent, exist_ok=True)
            async with aiofiles.open(tmp_path, "wb") as f:
                await f.write(data)
                await f.flush()
            await aiofiles.os.replace(tmp_path, path)
            written = (await aiofiles.os.stat(path)).st_size
        except (OSError, ValueError) as e:
            # ValueError: the path is unusable (e.g. an embedded NUL)
            await self._discard(tmp_path)
            logger.error("Failed to write blob %s: %s", storage_path, e)
            raise StorageWriteFailed(f"Could not write blob: {getattr(e, 'strerror', None) or e}") from e

        if written != len(data):
            await self._discard(path)
            raise StorageWriteFailed(f"Wrote {written} bytes to {storage_path}, expected {len(data)}")

    async def read(self, storage_path: str) -> bytes:
        """Read the full blob at storage_path.

        Raises:
            BlobNotFound: If nothing exists at storage_path.
            StorageReadFailed: On any other filesystem error.
        """
        try:
            async with aiofiles.open(storage_path, "rb") as f:
                return await f.read()
        except FileNotFoundError as e:
            raise BlobNotFound(f"No blob at {storage_path}") from e
        except OSError as e:
            logger.error("Failed to read blob %s: %s", storage_path, e)
            raise StorageReadFailed(f"Could not read blob: {e.strerror or e}") from e

    async def delete(self, storage_path: str) -> None:
        """Remove the blob at storage_path. Missing blobs are ignored.

        Raises:
            OSError: If the blob exists but cannot be removed.
        """
        try:
            await aiofiles.os.remove(storage_path)
        except FileNotFoundError:
            return

    async def exists(self, storage_path: str) -> bool:
        return await aiofiles.os.path.isfile(storage_path)

    async def _discard(self, path: Path) -> None:
        try:
            await aiofiles.os.remove(path)
        except (OSError, ValueError) as e:
            if getattr(e, "errno", None) != errno.ENOENT:
                logger.warning("Could not remove partial blob %s: %s", path, e)
