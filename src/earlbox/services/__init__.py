"""Storage services exposed to the HTTP and CLI layers."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from earlbox.config import Settings, settings as default_settings
from earlbox.services.ingestion import IngestionService, validate_upload
from earlbox.services.retrieval import RetrievalService
from earlbox.services.stats import FileStats, StatsService
from earlbox.storage.blob_store import LocalBlobStore
from earlbox.storage.metadata_store import MetadataStore


@dataclass
class Services:
    """The three storage operations, wired to one blob and one metadata store."""

    ingestion: IngestionService
    retrieval: RetrievalService
    stats: StatsService


def build_services(
    session_factory: async_sessionmaker[AsyncSession],
    config: Settings | None = None,
) -> Services:
    config = config or default_settings
    blobs = LocalBlobStore(config.content_root)
    metadata = MetadataStore(session_factory)
    return Services(
        ingestion=IngestionService(
            blobs,
            metadata,
            max_upload_bytes=config.max_upload_bytes,
            accepted_media_prefixes=config.accepted_media_prefixes,
            public_token_bytes=config.public_token_bytes,
        ),
        retrieval=RetrievalService(blobs, metadata),
        stats=StatsService(metadata, cache_ttl=config.stats_cache_ttl_seconds),
    )


__all__ = [
    "FileStats",
    "IngestionService",
    "RetrievalService",
    "Services",
    "StatsService",
    "build_services",
    "validate_upload",
]
