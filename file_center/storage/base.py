"""
Abstract base class for chunk stores.

This module defines the interface the ingestion, retrieval and cleanup
services use to persist and read back chunked file content.
"""
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Iterable
from datetime import datetime


class ChunkStore(ABC):
    """
    Abstract base class for chunk stores.

    A chunk store keeps the content of large files as ordered chunks keyed
    by the owning file id and a zero-based sequence number.
    """

    @abstractmethod
    async def append_chunk(
        self,
        file_id: str,
        n: int,
        data: bytes,
        expire_at: datetime | None = None,
    ) -> str:
        """
        Store one chunk.

        Args:
            file_id: Id of the owning file record
            n: Zero-based sequence number of the chunk
            data: Chunk bytes
            expire_at: Expiration time for chunks of temporary files

        Returns:
            Id of the stored chunk

        Raises:
            StoreError: If the write fails
        """
        pass

    @abstractmethod
    def read_chunks(self, file_id: str) -> AsyncIterator[bytes]:
        """
        Read the chunks of a file in sequence order.

        Chunks are fetched one at a time, so memory use is bounded by a
        single chunk regardless of the file size. The iterator stops at the
        first missing sequence number.

        Args:
            file_id: Id of the owning file record

        Returns:
            Async iterator yielding chunk bytes
        """
        pass

    @abstractmethod
    async def delete_chunks(self, file_id: str) -> int:
        """
        Delete every chunk of a file.

        Args:
            file_id: Id of the owning file record

        Returns:
            Number of chunks deleted
        """
        pass

    @abstractmethod
    async def delete_chunks_of(self, file_ids: Iterable[str]) -> int:
        """
        Delete every chunk of several files in bulk.

        Args:
            file_ids: Ids of the owning file records

        Returns:
            Number of chunks deleted
        """
        pass

    @abstractmethod
    async def delete_expired_chunks(self, now: datetime) -> int:
        """
        Delete chunks of temporary files whose expiration time has passed.

        Args:
            now: Reference time; chunks expiring strictly before it are removed

        Returns:
            Number of chunks deleted
        """
        pass

    @abstractmethod
    async def list_file_ids(self) -> set[str]:
        """
        List the distinct owning file ids present in the store.

        Returns:
            Set of file ids that have at least one chunk
        """
        pass

    @abstractmethod
    async def list_first_chunk_ids(self) -> set[str]:
        """
        List the ids of every chunk with sequence number 0.

        Returns:
            Set of chunk ids
        """
        pass
