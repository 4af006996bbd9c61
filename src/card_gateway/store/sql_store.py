"""SQL-backed document store (SQLite or PostgreSQL through async SQLAlchemy)."""

import asyncio
import logging
import random
from typing import Any, Dict, Optional

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .base import (
    DocumentStore,
    DocumentNotFound,
    ConcurrentModificationError,
    Mutator,
    deep_merge,
)
from .models import Document, encode_data, utcnow
from .session import DatabaseManager

logger = logging.getLogger(__name__)

# Attempts before a contended transaction gives up
DEFAULT_MAX_ATTEMPTS = 5
# Base delay in seconds between attempts, scaled by attempt number and jittered
RETRY_BACKOFF = 0.01


class SQLDocumentStore(DocumentStore):
    """
    Stores each document as a JSON row keyed by its path.

    Every write bumps the row's ``version``; ``transact`` only commits when
    the version it read is still current and re-runs the mutator otherwise.
    """

    backend = "sql"

    def __init__(self, database_url: Optional[str] = None, echo: bool = False,
                 max_attempts: int = DEFAULT_MAX_ATTEMPTS):
        self.db = DatabaseManager(database_url, echo=echo)
        self.max_attempts = max_attempts

    async def initialize(self, create_tables: bool = True) -> None:
        await self.db.initialize(create_tables=create_tables)

    async def close(self) -> None:
        await self.db.shutdown()

    async def get(self, path: str) -> Optional[Dict[str, Any]]:
        async with self.db.session() as session:
            row = await session.get(Document, path)
            return row.data if row is not None else None

    async def set(self, path: str, data: Dict[str, Any], merge: bool = False) -> None:
        async with self.db.session() as session:
            row = await session.get(Document, path)
            if row is None:
                row = Document(path=path, version=1)
                row.data = data
                session.add(row)
            else:
                row.data = deep_merge(row.data, data) if merge else data
                row.version = row.version + 1
            await session.commit()
        logger.debug(f"Wrote document {path} (merge={merge})")

    async def update(self, path: str, fields: Dict[str, Any]) -> None:
        def _require_existing(current):
            if current is None:
                raise DocumentNotFound(path)
            return fields

        await self.transact(path, _require_existing)

    async def transact(self, path: str, mutator: Mutator) -> Dict[str, Any]:
        for attempt in range(1, self.max_attempts + 1):
            async with self.db.session() as session:
                row = await session.get(Document, path)
                current = row.data if row is not None else None
                fields = mutator(current)
                written = deep_merge(current or {}, fields)

                if row is None:
                    session.add(Document(path=path, data_json=encode_data(written), version=1))
                    try:
                        await session.commit()
                        return written
                    except IntegrityError:
                        await session.rollback()
                        logger.info(f"Document {path} created concurrently, retrying (attempt {attempt})")
                elif await self._compare_and_swap(session, path, row.version, written):
                    await session.commit()
                    return written
                else:
                    await session.rollback()
                    logger.info(f"Document {path} changed concurrently, retrying (attempt {attempt})")

            if attempt < self.max_attempts:
                await asyncio.sleep(RETRY_BACKOFF * attempt * random.uniform(0.5, 1.5))

        logger.error(f"Giving up on document {path} after {self.max_attempts} attempts")
        raise ConcurrentModificationError(path, self.max_attempts)

    async def _compare_and_swap(self, session: AsyncSession, path: str,
                                expected_version: int, data: Dict[str, Any]) -> bool:
        result = await session.execute(
            update(Document)
            .where(Document.path == path, Document.version == expected_version)
            .values(data_json=encode_data(data), version=expected_version + 1, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def count(self) -> int:
        async with self.db.session() as session:
            result = await session.execute(select(func.count()).select_from(Document))
            return result.scalar_one()

    async def health_check(self) -> Dict[str, Any]:
        try:
            count = await self.count()
        except Exception as e:
            logger.error(f"SQL store health check failed: {e}")
            return {"ok": False, "backend": self.backend, "error": type(e).__name__}
        return {"ok": True, "backend": self.backend, "document_count": count}
