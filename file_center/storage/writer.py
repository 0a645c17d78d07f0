"""
Sequential chunk writer.

Accepts arbitrarily sized writes and cuts them into fixed-size chunks, so
callers can pipe any source into the chunk store while holding at most one
chunk in memory.
"""
from datetime import datetime

from file_center.storage.base import ChunkStore


class ChunkWriter:
    """
    Append-only writer producing contiguous chunks for one file.

    Every chunk but the last is exactly chunk_size bytes. Chunk 0 is always
    written, even for empty content.
    """

    def __init__(
        self,
        store: ChunkStore,
        file_id: str,
        chunk_size: int,
        expire_at: datetime | None = None,
    ):
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")

        self.store = store
        self.file_id = file_id
        self.chunk_size = chunk_size
        self.expire_at = expire_at
        self.first_chunk_id: str | None = None
        self.chunks_written = 0
        self.bytes_written = 0
        self._buffer = bytearray()
        self._closed = False

    @property
    def buffered(self) -> int:
        """Number of bytes waiting for the current chunk to fill up."""
        return len(self._buffer)

    @property
    def remaining_capacity(self) -> int:
        """Number of bytes that complete the current chunk."""
        return self.chunk_size - len(self._buffer)

    async def write(self, data: bytes) -> None:
        if self._closed:
            raise ValueError("Cannot write to a closed ChunkWriter")

        self._buffer.extend(data)
        while len(self._buffer) >= self.chunk_size:
            chunk = bytes(self._buffer[:self.chunk_size])
            del self._buffer[:self.chunk_size]
            await self._flush(chunk)

    async def close(self) -> str:
        """
        Flush the trailing partial chunk.

        Returns:
            Id of chunk 0
        """
        if not self._closed:
            if self._buffer or self.chunks_written == 0:
                await self._flush(bytes(self._buffer))
                self._buffer.clear()
            self._closed = True

        return self.first_chunk_id

    async def _flush(self, chunk: bytes) -> None:
        chunk_id = await self.store.append_chunk(
            self.file_id, self.chunks_written, chunk, expire_at=self.expire_at
        )
        if self.chunks_written == 0:
            self.first_chunk_id = chunk_id
        self.chunks_written += 1
        self.bytes_written += len(chunk)
