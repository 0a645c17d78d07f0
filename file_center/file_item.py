"""
Files as returned by the file center.

A FileItem carries the metadata of one stored file and its content as
FileData: either an in-memory buffer (inline files) or a lazy, single-pass
stream of chunks (chunked files).
"""
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import datetime

from file_center.exceptions import StreamConsumedError


class FileData:
    """Content of a retrieved file."""

    def __init__(
        self,
        buffer: bytes | None = None,
        stream: AsyncIterator[bytes] | None = None,
    ):
        if (buffer is None) == (stream is None):
            raise ValueError("FileData needs exactly one of buffer or stream")

        self.buffer = buffer
        self._stream = stream
        self._consumed = False

    @property
    def is_buffer(self) -> bool:
        return self.buffer is not None

    @property
    def is_stream(self) -> bool:
        return self._stream is not None

    def __aiter__(self) -> AsyncIterator[bytes]:
        if self.buffer is not None:
            return self._iter_buffer()

        if self._consumed:
            raise StreamConsumedError("The chunk stream has already been consumed")
        self._consumed = True
        return self._stream

    async def _iter_buffer(self) -> AsyncIterator[bytes]:
        yield self.buffer

    async def read_all(self) -> bytes:
        """Materialize the whole content in memory."""
        if self.buffer is not None:
            return self.buffer

        content = bytearray()
        async for chunk in self:
            content.extend(chunk)
        return bytes(content)

    def __repr__(self) -> str:
        if self.buffer is not None:
            return f"<FileData(buffer={len(self.buffer)} bytes)>"
        return "<FileData(stream)>"


@dataclass
class FileItem:
    """
    A file retrieved from the file center.

    Attributes:
        id: Record id
        create_time: Creation timestamp (UTC)
        expire_at: Expiration timestamp for temporary files, otherwise None
        mime_type: MIME type of the content
        file_size: Size of the content in bytes
        file_name: Display name
        file_data: The content, as a buffer or a lazy stream
    """

    id: str
    create_time: datetime
    expire_at: datetime | None
    mime_type: str
    file_size: int
    file_name: str
    file_data: FileData = field(repr=False)

    @property
    def is_temporary(self) -> bool:
        return self.expire_at is not None
