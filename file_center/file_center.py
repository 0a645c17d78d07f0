"""
FileCenter: the public entry point of the library.

A FileCenter owns the database engine, the engine settings and the id
token codec, and delegates every file operation to the services. Database
failures surface as StoreError.
"""
import hashlib
from datetime import datetime, timedelta
from os import PathLike
from typing import Any

from sqlalchemy import Engine

from file_center.config import settings
from file_center.database import Base, create_database_engine, create_session_factory
from file_center.exceptions import translate_store_errors
from file_center.file_item import FileItem
from file_center.logging_config import setup_logging
from file_center.models import FileCenterSetting, FileChunk, FileRecord
from file_center.services import cleanup, deletion, engine_settings, ingestion, retrieval
from file_center.services.cleanup import ExpiredReport, GarbageReport
from file_center.services.context import StoreContext
from file_center.storage.database import DatabaseChunkStore
from file_center.utils.hashing import DIGEST_SIZE, HasherFactory
from file_center.utils.id_token import IdTokenCodec
from file_center.utils.datetime import to_epoch_millis

logger = setup_logging()

TABLES = [FileRecord.__table__, FileChunk.__table__, FileCenterSetting.__table__]


class FileCenter:
    """
    Deduplicating, reference-counted file store.

    Identical content is stored once. Each put of content that is already
    stored adds a reference, and each delete removes one; the content goes
    away with the last reference. Content larger than the size threshold is
    split into chunks and streamed back lazily.
    """

    def __init__(
        self,
        database_url: str | None = None,
        *,
        engine: Engine | None = None,
        initial_file_size_threshold: int | None = None,
        hasher_factory: HasherFactory = hashlib.sha3_256,
        temporary_ttl_seconds: int | None = None,
        chunk_ttl_seconds: int | None = None,
    ):
        """
        Open a file center, creating its tables and settings when needed.

        Args:
            database_url: SQLAlchemy URL; defaults to the DATABASE_URL setting
            engine: Existing engine to use instead of database_url
            initial_file_size_threshold: Threshold for a fresh store; a stored one wins
            hasher_factory: Callable returning a fresh 256-bit hasher
            temporary_ttl_seconds: Lifetime of temporary records
            chunk_ttl_seconds: Lifetime of the chunks of temporary files

        Raises:
            FileSizeThresholdError: If the initial or stored threshold is out of range
            VersionError: If the stored version is malformed or too new
            StoreError: If the database fails
            ValueError: If hasher_factory does not produce 32-byte digests
        """
        if initial_file_size_threshold is None:
            initial_file_size_threshold = settings.FILE_SIZE_THRESHOLD
        engine_settings.validate_threshold(initial_file_size_threshold)

        digest_size = hasher_factory().digest_size
        if digest_size != DIGEST_SIZE:
            raise ValueError(f"The hasher must produce {DIGEST_SIZE}-byte digests, got {digest_size}")

        self._owns_engine = engine is None
        self.engine = engine or create_database_engine(database_url or settings.DATABASE_URL)
        self.session_factory = create_session_factory(self.engine)

        with translate_store_errors():
            Base.metadata.create_all(bind=self.engine, tables=TABLES)
            loaded = engine_settings.load_settings(
                self.session_factory, initial_file_size_threshold
            )

        self._file_size_threshold = loaded.file_size_threshold
        self._create_time = loaded.create_time
        self._version = loaded.version
        self._codec = IdTokenCodec(f"FileCenter-{to_epoch_millis(self._create_time)}")

        self._ctx = StoreContext(
            session_factory=self.session_factory,
            chunk_store=DatabaseChunkStore(self.session_factory),
            hasher_factory=hasher_factory,
            buffer_size=settings.BUFFER_SIZE,
            temporary_ttl=timedelta(
                seconds=temporary_ttl_seconds
                if temporary_ttl_seconds is not None
                else settings.TEMPORARY_TTL_SECONDS
            ),
            chunk_ttl=timedelta(
                seconds=chunk_ttl_seconds
                if chunk_ttl_seconds is not None
                else settings.CHUNK_TTL_SECONDS
            ),
        )

        logger.info(
            f"File center ready: threshold={self._file_size_threshold}, version={self._version}"
        )

    @property
    def file_size_threshold(self) -> int:
        return self._file_size_threshold

    @property
    def create_time(self) -> datetime:
        return self._create_time

    @property
    def version(self) -> int:
        return self._version

    async def set_size_threshold(self, file_size_threshold: int) -> None:
        """
        Change the size threshold for puts started from now on.

        Stored files keep their representation, and deduplication ignores
        the threshold, so content stored under an older threshold is still
        matched.

        Raises:
            FileSizeThresholdError: If the value is out of range
        """
        engine_settings.validate_threshold(file_size_threshold)
        if file_size_threshold == self._file_size_threshold:
            return

        with translate_store_errors():
            engine_settings.save_threshold(self.session_factory, file_size_threshold)
        self._file_size_threshold = file_size_threshold

    # Puts

    async def put_by_path(
        self,
        file_path: str | PathLike,
        file_name: str | None = None,
        mime_type: str | None = None,
    ) -> str:
        with translate_store_errors():
            return await ingestion.put_by_path(
                self._ctx, file_path, file_name, mime_type, self._file_size_threshold
            )

    async def put_by_buffer(
        self, buffer: bytes, file_name: str, mime_type: str | None = None
    ) -> str:
        with translate_store_errors():
            return await ingestion.put_by_buffer(
                self._ctx, buffer, file_name, mime_type, self._file_size_threshold
            )

    async def put_by_reader(
        self, reader: Any, file_name: str, mime_type: str | None = None
    ) -> str:
        with translate_store_errors():
            return await ingestion.put_by_reader(
                self._ctx, reader, file_name, mime_type, self._file_size_threshold
            )

    async def put_by_path_temporarily(
        self,
        file_path: str | PathLike,
        file_name: str | None = None,
        mime_type: str | None = None,
    ) -> str:
        with translate_store_errors():
            return await ingestion.put_by_path(
                self._ctx,
                file_path,
                file_name,
                mime_type,
                self._file_size_threshold,
                temporary=True,
            )

    async def put_by_buffer_temporarily(
        self, buffer: bytes, file_name: str, mime_type: str | None = None
    ) -> str:
        with translate_store_errors():
            return await ingestion.put_by_buffer(
                self._ctx,
                buffer,
                file_name,
                mime_type,
                self._file_size_threshold,
                temporary=True,
            )

    async def put_by_reader_temporarily(
        self, reader: Any, file_name: str, mime_type: str | None = None
    ) -> str:
        with translate_store_errors():
            return await ingestion.put_by_reader(
                self._ctx,
                reader,
                file_name,
                mime_type,
                self._file_size_threshold,
                temporary=True,
            )

    # Reads and deletes

    async def get(self, file_id: str) -> FileItem | None:
        """Retrieve a file; temporary files are consumed by this call."""
        with translate_store_errors():
            return await retrieval.get(self._ctx, file_id)

    async def check_exists(self, file_id: str) -> bool:
        with translate_store_errors():
            return await retrieval.check_exists(self._ctx, file_id)

    async def delete(self, file_id: str) -> int | None:
        """Release one reference; returns the file size, or None if there is no such file."""
        with translate_store_errors():
            return await deletion.delete(self._ctx, file_id)

    # Maintenance

    async def clear_garbage(self) -> GarbageReport:
        with translate_store_errors():
            return await cleanup.clear_garbage(self._ctx)

    async def clear_expired(self) -> ExpiredReport:
        with translate_store_errors():
            return await cleanup.clear_expired(self._ctx)

    async def drop_all(self) -> None:
        """Drop the file, chunk and settings tables. The center is unusable afterwards."""
        with translate_store_errors():
            Base.metadata.drop_all(bind=self.engine, tables=TABLES)
        logger.warning("Dropped all file center tables")

    def close(self) -> None:
        if self._owns_engine:
            self.engine.dispose()

    # Id tokens

    def encrypt_id(self, file_id: str) -> str:
        return self._codec.encrypt_id(file_id)

    def decrypt_id_token(self, id_token: str) -> str:
        return self._codec.decrypt_id_token(id_token)
