"""SQL-backed metadata store for FileRecords."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from earlbox.exceptions import MetadataWriteFailed
from earlbox.models.file_record import FileRecord

logger = logging.getLogger(__name__)


class MetadataStore:
    """Durable mapping from internal id and public token to FileRecords.

    Every call opens its own short-lived session, so one store instance can
    serve any number of concurrent requests. Uniqueness of ids and tokens is
    enforced by the database, not here.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def insert(self, record: FileRecord) -> FileRecord:
        """Insert a new record and return it as stored.

        Raises:
            MetadataWriteFailed: On a duplicate internal id or public token,
                or any other database error. Nothing is retried.
        """
        try:
            async with self._session_factory() as session:
                session.add(record)
                await session.flush()
                # Load server-side defaults (created_at) before the row is committed
                await session.refresh(record)
                await session.commit()
        except IntegrityError as e:
            logger.error("Rejected duplicate file record %s: %s", record.internal_id, e.orig)
            raise MetadataWriteFailed("File record conflicts with an existing record") from e
        except SQLAlchemyError as e:
            logger.error("Failed to insert file record %s: %s", record.internal_id, e)
            raise MetadataWriteFailed("Could not store file metadata") from e
        except OSError as e:
            # Connection failures can surface from the driver unwrapped
            logger.error("Metadata store unreachable while inserting %s: %s", record.internal_id, e)
            raise MetadataWriteFailed("Could not reach the metadata store") from e
        return record

    async def get_by_token(self, public_token: str) -> FileRecord | None:
        async with self._session_factory() as session:
            stmt = select(FileRecord).where(FileRecord.public_token == public_token)
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def get_by_internal_id(self, internal_id: UUID) -> FileRecord | None:
        async with self._session_factory() as session:
            return await session.get(FileRecord, internal_id)

    async def aggregate(self) -> tuple[int, int]:
        """Return (record count, sum of size_bytes) over all records.

        Both values are plain ints; an empty table yields (0, 0).
        """
        async with self._session_factory() as session:
            stmt = select(
                func.count(FileRecord.internal_id),
                func.coalesce(func.sum(FileRecord.size_bytes), 0),
            )
            count, total = (await session.execute(stmt)).one()
        # SUM over BigInteger comes back as Decimal on some drivers
        return int(count or 0), int(total or 0)
