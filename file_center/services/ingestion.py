"""
File ingestion service.

This module implements the put family. Each put decides between inline and
chunked storage, fingerprints the content, and then either joins an
existing record holding the same content (incrementing its reference
count) or inserts a new one. Temporary files skip deduplication entirely.
"""
import asyncio
import inspect
import mimetypes
import os
import re
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from os import PathLike
from pathlib import Path
from typing import Any

import aiofiles
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from file_center.config import DEFAULT_MIME_TYPE
from file_center.exceptions import FileCenterIOError, MimeTypeError, StoreError
from file_center.logging_config import setup_logging
from file_center.models.file_record import FileRecord
from file_center.services.context import StoreContext
from file_center.storage.writer import ChunkWriter
from file_center.utils.datetime import utcnow
from file_center.utils.hashing import FileHash, Fingerprinter, hash_buffer, hash_path
from file_center.utils.ids import new_file_id

logger = setup_logging()

# Upper bound on join/insert rounds when concurrent puts keep racing on the hash key
MAX_DEDUP_ATTEMPTS = 16

MIME_TYPE_PATTERN = re.compile(r"^[\w.+-]+/[\w.+-]+(\s*;.*)?$")


@dataclass
class Representation:
    """How the content of a file is stored: inline bytes or a chunk set."""

    file_size: int
    file_data: bytes | None = None
    chunk_id: str | None = None

    @property
    def is_chunked(self) -> bool:
        return self.chunk_id is not None


@dataclass
class Lookahead:
    """
    Result of eagerly reading threshold + 1 bytes from a reader.

    is_large is True only when the full threshold + 1 bytes arrived, which
    commits the put to chunked storage. Otherwise buffer is the complete
    content and is stored inline.
    """

    buffer: bytes
    is_large: bool


def resolve_mime_type(mime_type: str | None, file_path: str | PathLike | None = None) -> str:
    """
    Pick the MIME type to store.

    Args:
        mime_type: Caller-supplied MIME type, if any
        file_path: Source path used to guess a type from its extension

    Returns:
        The caller's type, the guessed type, or application/octet-stream

    Raises:
        MimeTypeError: If the caller-supplied type is not of the form type/subtype
    """
    if mime_type is None:
        if file_path is not None:
            guessed, _ = mimetypes.guess_type(os.fspath(file_path))
            if guessed:
                return guessed
        return DEFAULT_MIME_TYPE

    mime_type = mime_type.strip()
    if not MIME_TYPE_PATTERN.match(mime_type):
        raise MimeTypeError(mime_type)
    return mime_type


async def read_from(reader: Any, size: int) -> bytes:
    """
    Read up to size bytes from a sync or async reader.

    Readers with a coroutine read() (aiofiles handles, UploadFile) and plain
    file objects are both accepted.

    Raises:
        FileCenterIOError: If the reader fails
    """
    try:
        data = reader.read(size)
        if inspect.isawaitable(data):
            data = await data
    except OSError as e:
        raise FileCenterIOError(f"Failed to read from source: {str(e)}") from e

    return bytes(data) if data else b""


async def read_lookahead(reader: Any, threshold: int) -> Lookahead:
    """Read exactly threshold + 1 bytes, or everything the reader has if it is shorter."""
    limit = threshold + 1
    buffer = bytearray()

    while len(buffer) < limit:
        data = await read_from(reader, limit - len(buffer))
        if not data:
            return Lookahead(bytes(buffer), is_large=False)
        buffer.extend(data)

    return Lookahead(bytes(buffer), is_large=True)


def _stat_size(file_path: Path) -> int:
    try:
        return os.stat(file_path).st_size
    except OSError as e:
        raise FileCenterIOError(f"Failed to stat {file_path}: {str(e)}") from e


async def _write_buffer(
    ctx: StoreContext,
    file_id: str,
    buffer: bytes,
    threshold: int,
    chunk_expire_at: datetime | None,
) -> Representation:
    if len(buffer) <= threshold:
        return Representation(len(buffer), file_data=bytes(buffer))

    writer = ChunkWriter(ctx.chunk_store, file_id, threshold, chunk_expire_at)
    view = memoryview(buffer)
    for offset in range(0, len(buffer), threshold):
        await writer.write(view[offset:offset + threshold])
    chunk_id = await writer.close()

    return Representation(writer.bytes_written, chunk_id=chunk_id)


async def _write_path(
    ctx: StoreContext,
    file_id: str,
    file_path: Path,
    threshold: int,
    chunk_expire_at: datetime | None,
) -> Representation:
    size = _stat_size(file_path)

    try:
        async with aiofiles.open(file_path, "rb") as f:
            head = b""
            if size <= threshold:
                # The file may have grown since it was stat'ed
                head = await f.read(threshold + 1)
                if len(head) <= threshold:
                    return Representation(len(head), file_data=head)

            writer = ChunkWriter(ctx.chunk_store, file_id, threshold, chunk_expire_at)
            await writer.write(head)
            while True:
                data = await f.read(writer.remaining_capacity)
                if not data:
                    break
                await writer.write(data)
            chunk_id = await writer.close()
    except OSError as e:
        raise FileCenterIOError(f"Failed to read {file_path}: {str(e)}") from e

    return Representation(writer.bytes_written, chunk_id=chunk_id)


async def _write_reader(
    ctx: StoreContext,
    file_id: str,
    lookahead: Lookahead,
    reader: Any,
    threshold: int,
    chunk_expire_at: datetime | None,
    fingerprinter: Fingerprinter | None = None,
) -> Representation:
    """Drain the rest of a reader into chunks, hashing the tail as it goes."""
    writer = ChunkWriter(ctx.chunk_store, file_id, threshold, chunk_expire_at)
    await writer.write(lookahead.buffer)

    while True:
        # Never buffer more than what completes the current chunk
        data = await read_from(reader, writer.remaining_capacity)
        if not data:
            break
        if fingerprinter is not None:
            fingerprinter.update(data)
        await writer.write(data)

    chunk_id = await writer.close()
    return Representation(writer.bytes_written, chunk_id=chunk_id)


async def _already_written(representation: Representation) -> Representation:
    return representation


async def _discard_chunks(ctx: StoreContext, file_id: str, reason: str) -> None:
    """Best-effort removal of chunks that no record will ever point to."""
    try:
        deleted = await ctx.chunk_store.delete_chunks(file_id)
    except Exception as e:
        logger.warning(f"Failed to discard chunks of file_id={file_id} ({reason}): {str(e)}")
        return

    if deleted:
        logger.info(f"Discarded {deleted} chunks of file_id={file_id} ({reason})")


@asynccontextmanager
async def _discard_chunks_on_failure(
    ctx: StoreContext, file_id: str, file_name: str
) -> AsyncIterator[None]:
    try:
        yield
    except asyncio.CancelledError:
        logger.warning(f"Put of {file_name!r} cancelled, file_id={file_id}")
        await _discard_chunks(ctx, file_id, "put cancelled")
        raise
    except Exception as e:
        logger.error(f"Failed to store {file_name!r}: {str(e)}", exc_info=True)
        await _discard_chunks(ctx, file_id, "put failed")
        raise


def _hash_criteria(file_hash: FileHash) -> tuple:
    return (
        FileRecord.hash_1 == file_hash.hash_1,
        FileRecord.hash_2 == file_hash.hash_2,
        FileRecord.hash_3 == file_hash.hash_3,
        FileRecord.hash_4 == file_hash.hash_4,
    )


def _increment_count(db: Session, file_hash: FileHash) -> str | None:
    """Atomically add a reference to the record holding this content, returning its id."""
    file_id = db.execute(
        update(FileRecord)
        .where(*_hash_criteria(file_hash))
        .values(count=FileRecord.count + 1)
        .returning(FileRecord.id)
        .execution_options(synchronize_session=False)
    ).scalar_one_or_none()
    db.commit()
    return file_id


def _insert_record(db: Session, record: FileRecord) -> bool:
    """Insert a record; False when the hash key is already taken."""
    db.add(record)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return False
    return True


def _new_record(
    file_id: str,
    representation: Representation,
    file_name: str,
    mime_type: str,
    create_time: datetime,
    file_hash: FileHash | None = None,
    expire_at: datetime | None = None,
) -> FileRecord:
    return FileRecord(
        id=file_id,
        **(file_hash._asdict() if file_hash is not None else {}),
        file_size=representation.file_size,
        file_name=file_name,
        mime_type=mime_type,
        create_time=create_time,
        expire_at=expire_at,
        count=1,
        file_data=representation.file_data,
        chunk_id=representation.chunk_id,
    )


async def _join_or_insert(
    ctx: StoreContext,
    file_hash: FileHash,
    file_id: str,
    write_content: Callable[[], Awaitable[Representation]],
    file_name: str,
    mime_type: str,
) -> str:
    """
    Join the record holding this content, or insert a new one.

    The content is written (write_content) only after the first join
    attempt misses. A unique-key violation on insert means a concurrent put
    of the same content won the race, so the join is retried; once a join
    succeeds, chunks written by this put are discarded.

    Returns:
        Id of the joined or inserted record

    Raises:
        StoreError: If neither a join nor an insert succeeds within MAX_DEDUP_ATTEMPTS
    """
    representation: Representation | None = None

    db = ctx.session_factory()
    try:
        for attempt in range(1, MAX_DEDUP_ATTEMPTS + 1):
            existing_id = _increment_count(db, file_hash)
            if existing_id is not None:
                if representation is not None and representation.is_chunked:
                    await _discard_chunks(ctx, file_id, "content already stored")
                logger.info(f"Deduplicated {file_name!r} into file_id={existing_id}")
                return existing_id

            if representation is None:
                representation = await write_content()

            record = _new_record(
                file_id, representation, file_name, mime_type, utcnow(), file_hash=file_hash
            )
            if _insert_record(db, record):
                logger.info(
                    f"Stored {file_name!r}: file_id={file_id}, size={representation.file_size}, "
                    f"chunked={representation.is_chunked}"
                )
                return file_id

            logger.info(
                f"Insert of {file_name!r} lost a race on the content hash "
                f"(attempt {attempt}/{MAX_DEDUP_ATTEMPTS}), joining instead"
            )
    finally:
        db.close()

    raise StoreError(f"Could not store {file_name!r} after {MAX_DEDUP_ATTEMPTS} attempts")


async def _insert_temporary(
    ctx: StoreContext,
    file_id: str,
    write_content: Callable[[datetime], Awaitable[Representation]],
    file_name: str,
    mime_type: str,
) -> str:
    """Store a temporary file: no hash, count 1, short-lived record and longer-lived chunks."""
    representation = await write_content(utcnow() + ctx.chunk_ttl)

    create_time = utcnow()
    record = _new_record(
        file_id,
        representation,
        file_name,
        mime_type,
        create_time,
        expire_at=create_time + ctx.temporary_ttl,
    )

    db = ctx.session_factory()
    try:
        db.add(record)
        db.commit()
    finally:
        db.close()

    logger.info(
        f"Stored temporary {file_name!r}: file_id={file_id}, size={representation.file_size}, "
        f"chunked={representation.is_chunked}"
    )
    return file_id


async def put_by_path(
    ctx: StoreContext,
    file_path: str | PathLike,
    file_name: str | None,
    mime_type: str | None,
    threshold: int,
    temporary: bool = False,
) -> str:
    """
    Store a file from disk.

    Permanent files are hashed in a first pass, so chunks are only written
    when the content is not already stored.

    Args:
        ctx: Store collaborators
        file_path: Path of the source file
        file_name: Display name; defaults to the last path component
        mime_type: MIME type; guessed from the extension when omitted
        threshold: Size threshold in force for this put
        temporary: Store as a one-shot, expiring file

    Returns:
        Id of the stored file

    Raises:
        FileCenterIOError: If the file cannot be read
        MimeTypeError: If mime_type is malformed
        StoreError: If the database fails
    """
    file_path = Path(file_path)
    if file_name is None:
        file_name = file_path.name
    mime_type = resolve_mime_type(mime_type, file_path)
    file_id = new_file_id()

    async with _discard_chunks_on_failure(ctx, file_id, file_name):
        if temporary:
            return await _insert_temporary(
                ctx,
                file_id,
                lambda chunk_expire_at: _write_path(ctx, file_id, file_path, threshold, chunk_expire_at),
                file_name,
                mime_type,
            )

        try:
            file_hash = await hash_path(file_path, ctx.hasher_factory, ctx.buffer_size)
        except OSError as e:
            raise FileCenterIOError(f"Failed to read {file_path}: {str(e)}") from e

        return await _join_or_insert(
            ctx,
            file_hash,
            file_id,
            lambda: _write_path(ctx, file_id, file_path, threshold, None),
            file_name,
            mime_type,
        )


async def put_by_buffer(
    ctx: StoreContext,
    buffer: bytes,
    file_name: str,
    mime_type: str | None,
    threshold: int,
    temporary: bool = False,
) -> str:
    """
    Store an in-memory buffer.

    Returns:
        Id of the stored file

    Raises:
        MimeTypeError: If mime_type is malformed
        StoreError: If the database fails
    """
    mime_type = resolve_mime_type(mime_type)
    file_id = new_file_id()

    async with _discard_chunks_on_failure(ctx, file_id, file_name):
        if temporary:
            return await _insert_temporary(
                ctx,
                file_id,
                lambda chunk_expire_at: _write_buffer(ctx, file_id, buffer, threshold, chunk_expire_at),
                file_name,
                mime_type,
            )

        return await _join_or_insert(
            ctx,
            hash_buffer(buffer, ctx.hasher_factory),
            file_id,
            lambda: _write_buffer(ctx, file_id, buffer, threshold, None),
            file_name,
            mime_type,
        )


async def put_by_reader(
    ctx: StoreContext,
    reader: Any,
    file_name: str,
    mime_type: str | None,
    threshold: int,
    temporary: bool = False,
) -> str:
    """
    Store the content of a reader of unknown length.

    The first threshold + 1 bytes are read eagerly. A shorter source is
    stored inline and hashed as a whole. A longer one is committed to
    chunked storage: the tail is drained, hashed and chunked in one pass,
    and the chunks are discarded again if the content turns out to be
    stored already.

    Args:
        ctx: Store collaborators
        reader: Object with a read(size) method, sync or async
        file_name: Display name
        mime_type: MIME type, defaults to application/octet-stream
        threshold: Size threshold in force for this put
        temporary: Store as a one-shot, expiring file

    Returns:
        Id of the stored file

    Raises:
        FileCenterIOError: If the reader fails
        MimeTypeError: If mime_type is malformed
        StoreError: If the database fails
    """
    mime_type = resolve_mime_type(mime_type)
    file_id = new_file_id()

    async with _discard_chunks_on_failure(ctx, file_id, file_name):
        lookahead = await read_lookahead(reader, threshold)

        if not lookahead.is_large:
            if temporary:
                return await _insert_temporary(
                    ctx,
                    file_id,
                    lambda chunk_expire_at: _write_buffer(
                        ctx, file_id, lookahead.buffer, threshold, chunk_expire_at
                    ),
                    file_name,
                    mime_type,
                )

            return await _join_or_insert(
                ctx,
                hash_buffer(lookahead.buffer, ctx.hasher_factory),
                file_id,
                lambda: _write_buffer(ctx, file_id, lookahead.buffer, threshold, None),
                file_name,
                mime_type,
            )

        if temporary:
            return await _insert_temporary(
                ctx,
                file_id,
                lambda chunk_expire_at: _write_reader(
                    ctx, file_id, lookahead, reader, threshold, chunk_expire_at
                ),
                file_name,
                mime_type,
            )

        fingerprinter = Fingerprinter(ctx.hasher_factory)
        fingerprinter.update(lookahead.buffer)
        representation = await _write_reader(
            ctx, file_id, lookahead, reader, threshold, None, fingerprinter
        )

        return await _join_or_insert(
            ctx,
            fingerprinter.finalize(),
            file_id,
            lambda: _already_written(representation),
            file_name,
            mime_type,
        )
