"""
Database chunk store implementation.

Chunks live in the file_center_chunks table next to the file records, so a
single database holds the whole file center.
"""
from collections.abc import AsyncIterator, Iterable
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, sessionmaker

from file_center.models.file_chunk import FileChunk
from file_center.storage.base import ChunkStore
from file_center.utils.ids import new_file_id
from file_center.utils.iterables import batched


class DatabaseChunkStore(ChunkStore):
    """
    Chunk store backed by the file_center_chunks table.

    Every call opens its own short-lived session, so a slow consumer of
    read_chunks never holds a transaction open between chunks.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        """
        Initialize the database chunk store.

        Args:
            session_factory: Factory producing sessions bound to the file center database
        """
        self.session_factory = session_factory

    async def append_chunk(
        self,
        file_id: str,
        n: int,
        data: bytes,
        expire_at: datetime | None = None,
    ) -> str:
        chunk_id = new_file_id()

        db = self.session_factory()
        try:
            db.add(FileChunk(id=chunk_id, file_id=file_id, n=n, data=data, expire_at=expire_at))
            db.commit()
        finally:
            db.close()

        return chunk_id

    async def read_chunks(self, file_id: str) -> AsyncIterator[bytes]:
        n = 0
        while True:
            with self.session_factory() as db:
                data = db.execute(
                    select(FileChunk.data).where(FileChunk.file_id == file_id, FileChunk.n == n)
                ).scalar_one_or_none()

            if data is None:
                return

            yield data
            n += 1

    async def delete_chunks(self, file_id: str) -> int:
        db = self.session_factory()
        try:
            result = db.execute(
                delete(FileChunk)
                .where(FileChunk.file_id == file_id)
                .execution_options(synchronize_session=False)
            )
            db.commit()
            return result.rowcount
        finally:
            db.close()

    async def delete_chunks_of(self, file_ids: Iterable[str]) -> int:
        deleted = 0

        db = self.session_factory()
        try:
            for batch in batched(file_ids):
                result = db.execute(
                    delete(FileChunk)
                    .where(FileChunk.file_id.in_(batch))
                    .execution_options(synchronize_session=False)
                )
                deleted += result.rowcount
            db.commit()
        finally:
            db.close()

        return deleted

    async def delete_expired_chunks(self, now: datetime) -> int:
        db = self.session_factory()
        try:
            result = db.execute(
                delete(FileChunk)
                .where(FileChunk.expire_at.is_not(None), FileChunk.expire_at < now)
                .execution_options(synchronize_session=False)
            )
            db.commit()
            return result.rowcount
        finally:
            db.close()

    async def list_file_ids(self) -> set[str]:
        with self.session_factory() as db:
            return set(db.execute(select(FileChunk.file_id).distinct()).scalars())

    async def list_first_chunk_ids(self) -> set[str]:
        with self.session_factory() as db:
            return set(db.execute(select(FileChunk.id).where(FileChunk.n == 0)).scalars())
