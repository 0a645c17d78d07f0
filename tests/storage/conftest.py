"""
Conftest for storage tests - a bare chunk store without a FileCenter.
"""
import pytest

import file_center.models  # noqa: F401  registers the tables on Base.metadata
from file_center.database import Base, create_database_engine, create_session_factory
from file_center.storage.database import DatabaseChunkStore


@pytest.fixture
def chunk_store(tmp_path):
    engine = create_database_engine(f"sqlite:///{tmp_path / 'chunks.db'}")
    Base.metadata.create_all(bind=engine)

    yield DatabaseChunkStore(create_session_factory(engine))

    engine.dispose()
