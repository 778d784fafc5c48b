"""Aggregate usage statistics."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass

from earlbox.config import settings
from earlbox.storage.metadata_store import MetadataStore


@dataclass(frozen=True)
class FileStats:
    total_files: int = 0
    total_size_bytes: int = 0


class StatsService:
    """Counts files and sums their sizes.

    With ``cache_ttl`` > 0 the last result is reused for up to that many
    seconds. Records are never deleted, so a refreshed value is never
    allowed to go below the cached one.
    """

    def __init__(
        self,
        metadata_store: MetadataStore,
        *,
        cache_ttl: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._metadata = metadata_store
        self._ttl = settings.stats_cache_ttl_seconds if cache_ttl is None else cache_ttl
        self._cached: FileStats | None = None
        self._cached_at = float("-inf")
        self._clock = clock
        self._lock = asyncio.Lock()

    async def get_stats(self) -> FileStats:
        if self._ttl <= 0:
            return await self._compute()

        async with self._lock:
            if self._cached is not None and self._clock() - self._cached_at < self._ttl:
                return self._cached

            fresh = await self._compute()
            previous = self._cached
            if previous is not None and (
                fresh.total_files < previous.total_files
                or fresh.total_size_bytes < previous.total_size_bytes
            ):
                fresh = previous
            self._cached = fresh
            self._cached_at = self._clock()
            return fresh

    def invalidate(self) -> None:
        """Force the next call to hit the metadata store."""
        self._cached_at = float("-inf")

    async def _compute(self) -> FileStats:
        total_files, total_size = await self._metadata.aggregate()
        return FileStats(total_files=total_files, total_size_bytes=total_size)
