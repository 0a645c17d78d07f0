"""Collaborators shared by the ingestion, retrieval, deletion and cleanup services."""
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.orm import Session, sessionmaker

from file_center.storage.base import ChunkStore
from file_center.utils.hashing import HasherFactory


@dataclass(frozen=True)
class StoreContext:
    session_factory: sessionmaker[Session]
    chunk_store: ChunkStore
    hasher_factory: HasherFactory
    buffer_size: int
    temporary_ttl: timedelta
    chunk_ttl: timedelta
