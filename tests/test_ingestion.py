"""Tests for upload validation and ingestion."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from earlbox.exceptions import (
    InvalidOriginalName,
    MetadataWriteFailed,
    PayloadTooLarge,
    SizeMismatch,
    StorageWriteFailed,
    UnsupportedMediaType,
)
from earlbox.services.ingestion import IngestionService, validate_upload
from earlbox.services.retrieval import RetrievalService
from earlbox.storage.blob_store import LocalBlobStore
from earlbox.storage.metadata_store import MetadataStore

MAX = 200 * 1024 * 1024
ACCEPTED = ("image/", "video/")


def record_fields(record) -> dict:
    return {column.key: getattr(record, column.key) for column in record.__table__.columns}


class TestValidateUpload:
    """Validation runs before any write and needs no real content."""

    def _validate(self, name="a.png", ctype="image/png", size=10, length=None) -> None:
        validate_upload(
            name,
            ctype,
            size,
            size if length is None else length,
            max_upload_bytes=MAX,
            accepted_media_prefixes=ACCEPTED,
        )

    def test_accepts_image_and_video(self) -> None:
        self._validate(ctype="image/jpeg")
        self._validate(ctype="video/mp4")
        self._validate(ctype="IMAGE/PNG")

    @pytest.mark.parametrize("ctype", ["application/pdf", "text/plain", "", "imagery/png", "video"])
    def test_rejects_other_media_types(self, ctype: str) -> None:
        with pytest.raises(UnsupportedMediaType):
            self._validate(ctype=ctype)

    @pytest.mark.parametrize("name", ["", "   "])
    def test_rejects_empty_name(self, name: str) -> None:
        with pytest.raises(InvalidOriginalName):
            self._validate(name=name)

    @pytest.mark.parametrize("name", ["a.p\x00ng", "line\nbreak.png", "tab\t.png", "del\x7f.png"])
    def test_rejects_control_characters(self, name: str) -> None:
        with pytest.raises(InvalidOriginalName):
            self._validate(name=name)

    def test_allows_unicode_names(self) -> None:
        self._validate(name="férias 🏖.png")

    def test_exact_limit_accepted(self) -> None:
        self._validate(size=MAX)

    def test_one_over_limit_rejected(self) -> None:
        with pytest.raises(PayloadTooLarge) as exc_info:
            self._validate(size=MAX + 1)
        assert exc_info.value.max_bytes == MAX

    @pytest.mark.parametrize("size", [0, -1])
    def test_non_positive_size_rejected(self, size: int) -> None:
        with pytest.raises(PayloadTooLarge):
            self._validate(size=size)

    def test_declared_size_must_match_content(self) -> None:
        with pytest.raises(SizeMismatch) as exc_info:
            self._validate(size=10, length=9)
        assert (exc_info.value.declared, exc_info.value.actual) == (10, 9)

    def test_checks_run_in_fixed_order(self) -> None:
        # Wrong type and wrong size: the media type is reported
        with pytest.raises(UnsupportedMediaType):
            self._validate(ctype="application/pdf", size=MAX + 1, length=3)


class TestIngest:
    async def test_stores_blob_and_record(
        self,
        ingestion: IngestionService,
        content_root: Path,
        make_image,
    ) -> None:
        data = make_image()

        record = await ingestion.ingest("holiday.png", "image/png", len(data), data)

        assert record.stored_name == f"{record.internal_id}.png"
        assert Path(record.storage_path) == content_root.resolve() / record.stored_name
        assert Path(record.storage_path).read_bytes() == data
        assert record.size_bytes == len(data)
        assert record.original_name == "holiday.png"
        assert record.content_type == "image/png"
        assert record.created_at is not None

    async def test_metadata_matches_ingested_record(
        self, ingestion: IngestionService, retrieval: RetrievalService, make_image
    ) -> None:
        data = make_image(format="JPEG")
        record = await ingestion.ingest("cam.jpg", "image/jpeg", len(data), data)

        fetched = await retrieval.get_metadata(record.public_token)

        assert fetched is not None
        assert record_fields(fetched) == record_fields(record)

    async def test_name_without_extension(self, ingestion: IngestionService) -> None:
        record = await ingestion.ingest("clip", "video/mp4", 4, b"\x00\x00\x00\x18")
        assert record.stored_name == str(record.internal_id)

    async def test_identical_uploads_get_distinct_ids(self, ingestion: IngestionService, make_image) -> None:
        data = make_image()
        first = await ingestion.ingest("same.png", "image/png", len(data), data)
        second = await ingestion.ingest("same.png", "image/png", len(data), data)

        assert first.internal_id != second.internal_id
        assert first.public_token != second.public_token
        assert first.storage_path != second.storage_path

    async def test_token_independent_of_internal_id(self, ingestion: IngestionService) -> None:
        record = await ingestion.ingest("a.gif", "image/gif", 6, b"GIF89a")
        assert record.internal_id.hex not in record.public_token
        assert len(record.public_token) == 32

    async def test_concurrent_ingests(self, ingestion: IngestionService, content_root: Path) -> None:
        payloads = [bytes([i]) * (i + 1) for i in range(5)]
        records = await asyncio.gather(
            *(ingestion.ingest(f"f{i}.png", "image/png", len(p), p) for i, p in enumerate(payloads))
        )

        assert len({r.public_token for r in records}) == 5
        assert len(list(content_root.iterdir())) == 5

    async def test_validation_failure_writes_nothing(
        self, ingestion: IngestionService, content_root: Path, metadata_store: MetadataStore
    ) -> None:
        with pytest.raises(UnsupportedMediaType):
            await ingestion.ingest("doc.pdf", "application/pdf", 4, b"%PDF")
        with pytest.raises(SizeMismatch):
            await ingestion.ingest("a.png", "image/png", 5, b"1234")

        assert not content_root.exists()
        assert await metadata_store.aggregate() == (0, 0)

    async def test_ingest_at_exact_limit(
        self,
        blob_store: LocalBlobStore,
        metadata_store: MetadataStore,
        retrieval: RetrievalService,
    ) -> None:
        limit = 64 * 1024
        service = IngestionService(blob_store, metadata_store, max_upload_bytes=limit)
        data = bytes(range(256)) * (limit // 256)

        record = await service.ingest("edge.png", "image/png", limit, data)

        found = await retrieval.get_content(record.public_token)
        assert found is not None
        assert found[1] == data
        assert record.size_bytes == limit
        with pytest.raises(PayloadTooLarge):
            await service.ingest("over.png", "image/png", limit + 1, data + b"!")
        assert await metadata_store.aggregate() == (1, limit)

    async def test_limit_is_configurable(
        self, blob_store: LocalBlobStore, metadata_store: MetadataStore
    ) -> None:
        service = IngestionService(blob_store, metadata_store, max_upload_bytes=8)
        await service.ingest("ok.png", "image/png", 8, b"12345678")
        with pytest.raises(PayloadTooLarge):
            await service.ingest("big.png", "image/png", 9, b"123456789")


class TestIngestFailures:
    async def test_blob_write_failure_creates_no_record(
        self, tmp_path: Path, metadata_store: MetadataStore
    ) -> None:
        occupied = tmp_path / "occupied"
        occupied.write_text("not a directory")
        service = IngestionService(LocalBlobStore(occupied), metadata_store)

        with pytest.raises(StorageWriteFailed):
            await service.ingest("a.png", "image/png", 3, b"abc")

        assert await metadata_store.aggregate() == (0, 0)

    async def test_metadata_failure_removes_blob(
        self, blob_store: LocalBlobStore, metadata_store: MetadataStore, content_root: Path
    ) -> None:
        service = IngestionService(
            blob_store, metadata_store, token_factory=lambda nbytes: "f" * (nbytes * 2)
        )
        first = await service.ingest("one.png", "image/png", 3, b"one")

        with pytest.raises(MetadataWriteFailed):
            await service.ingest("two.png", "image/png", 3, b"two")

        assert [p.name for p in content_root.iterdir()] == [first.stored_name]
        assert await metadata_store.aggregate() == (1, 3)

    async def test_cleanup_failure_is_logged_not_raised(
        self,
        blob_store: LocalBlobStore,
        metadata_store: MetadataStore,
        content_root: Path,
        monkeypatch: pytest.MonkeyPatch,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        service = IngestionService(
            blob_store, metadata_store, token_factory=lambda nbytes: "e" * (nbytes * 2)
        )
        await service.ingest("one.png", "image/png", 3, b"one")

        async def broken_delete(storage_path: str) -> None:
            raise PermissionError(13, "Permission denied", storage_path)

        monkeypatch.setattr(blob_store, "delete", broken_delete)

        with caplog.at_level(logging.ERROR, logger="earlbox.services.ingestion"):
            with pytest.raises(MetadataWriteFailed):
                await service.ingest("two.png", "image/png", 3, b"two")

        assert "Could not remove orphan blob" in caplog.text
        # The orphan stays behind
        assert len(list(content_root.iterdir())) == 2

    async def test_unreachable_database_removes_blob(
        self,
        ingestion: IngestionService,
        content_root: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        async def refused_flush(self, *args, **kwargs) -> None:
            raise ConnectionRefusedError(111, "Connection refused")

        monkeypatch.setattr(AsyncSession, "flush", refused_flush)

        with pytest.raises(MetadataWriteFailed):
            await ingestion.ingest("a.png", "image/png", 3, b"abc")

        assert list(content_root.iterdir()) == []

    async def test_refresh_failure_leaves_neither_blob_nor_record(
        self,
        ingestion: IngestionService,
        retrieval: RetrievalService,
        metadata_store: MetadataStore,
        content_root: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        async def failing_refresh(self, instance, *args, **kwargs) -> None:
            raise OperationalError("SELECT files", {}, Exception("connection lost"))

        monkeypatch.setattr(AsyncSession, "refresh", failing_refresh)

        with pytest.raises(MetadataWriteFailed):
            await ingestion.ingest("a.png", "image/png", 3, b"abc")

        monkeypatch.undo()
        assert await metadata_store.aggregate() == (0, 0)
        assert list(content_root.iterdir()) == []

    async def test_control_characters_in_name_write_nothing(
        self, ingestion: IngestionService, content_root: Path, metadata_store: MetadataStore
    ) -> None:
        with pytest.raises(InvalidOriginalName):
            await ingestion.ingest("a.p\x00ng", "image/png", 3, b"abc")

        assert not content_root.exists()
        assert await metadata_store.aggregate() == (0, 0)
