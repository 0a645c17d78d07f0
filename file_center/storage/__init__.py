"""
Chunk storage layer.

This package keeps the content of large files as ordered, fixed-size
chunks and streams them back in sequence order.
"""

from file_center.storage.base import ChunkStore
from file_center.storage.database import DatabaseChunkStore
from file_center.storage.writer import ChunkWriter

__all__ = [
    "ChunkStore",
    "ChunkWriter",
    "DatabaseChunkStore",
]
