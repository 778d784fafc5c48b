"""Shared pytest fixtures for EarlBox tests."""

from __future__ import annotations

import io
from collections.abc import AsyncGenerator, Callable
from pathlib import Path

import pytest
from PIL import Image
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from earlbox.config import Settings
from earlbox.models import Base
from earlbox.services import Services, build_services
from earlbox.services.ingestion import IngestionService
from earlbox.services.retrieval import RetrievalService
from earlbox.services.stats import StatsService
from earlbox.storage.blob_store import LocalBlobStore
from earlbox.storage.metadata_store import MetadataStore


@pytest.fixture
async def test_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """SQLite database in a temp dir with all tables created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'earlbox.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def content_root(tmp_path: Path) -> Path:
    return tmp_path / "content"


@pytest.fixture
def blob_store(content_root: Path) -> LocalBlobStore:
    return LocalBlobStore(content_root)


@pytest.fixture
def metadata_store(session_factory: async_sessionmaker[AsyncSession]) -> MetadataStore:
    return MetadataStore(session_factory)


@pytest.fixture
def ingestion(blob_store: LocalBlobStore, metadata_store: MetadataStore) -> IngestionService:
    return IngestionService(
        blob_store,
        metadata_store,
        max_upload_bytes=200 * 1024 * 1024,
        accepted_media_prefixes=["image/", "video/"],
        public_token_bytes=16,
    )


@pytest.fixture
def retrieval(blob_store: LocalBlobStore, metadata_store: MetadataStore) -> RetrievalService:
    return RetrievalService(blob_store, metadata_store)


@pytest.fixture
def stats_service(metadata_store: MetadataStore) -> StatsService:
    return StatsService(metadata_store, cache_ttl=0)


@pytest.fixture
def services(
    session_factory: async_sessionmaker[AsyncSession], content_root: Path
) -> Services:
    """Fully wired services, as the app and CLI build them."""
    config = Settings(
        content_root=content_root,
        accepted_media_prefixes=["image/", "video/"],
        stats_cache_ttl_seconds=0,
    )
    return build_services(session_factory, config)


MakeImage = Callable[..., bytes]


@pytest.fixture
def make_image() -> MakeImage:
    """Factory fixture for encoded test images."""

    def _make(width: int = 16, height: int = 16, format: str = "PNG", color: str = "red") -> bytes:
        img = Image.new("RGB", (width, height), color=color)
        buffer = io.BytesIO()
        img.save(buffer, format=format)
        return buffer.getvalue()

    return _make
