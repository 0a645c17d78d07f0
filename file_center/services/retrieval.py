"""
File retrieval service.

Looks records up by id and turns them into FileItems. Temporary files are
consumed by the lookup that returns them, so each can be read only once.
"""
from collections.abc import AsyncIterator
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.engine import Row

from file_center.exceptions import DocumentError, FileCenterIOError, translate_store_errors
from file_center.file_item import FileData, FileItem
from file_center.logging_config import setup_logging
from file_center.models.file_record import FileRecord
from file_center.services.context import StoreContext
from file_center.utils.datetime import ensure_aware, utcnow

logger = setup_logging()

# Everything a FileItem needs; hashes and count stay in the database
ITEM_COLUMNS = (
    FileRecord.id,
    FileRecord.create_time,
    FileRecord.expire_at,
    FileRecord.mime_type,
    FileRecord.file_size,
    FileRecord.file_name,
    FileRecord.file_data,
    FileRecord.chunk_id,
)


def _required(row: Row, field: str, expected_type: type) -> Any:
    value = getattr(row, field)
    if value is None:
        raise DocumentError(field)
    if not isinstance(value, expected_type):
        raise DocumentError(field, f"is not of type {expected_type.__name__}")
    return value


async def _sized_stream(
    chunks: AsyncIterator[bytes], file_id: str, file_size: int
) -> AsyncIterator[bytes]:
    """Pass chunks through, failing if they add up to less than the recorded size."""
    received = 0
    with translate_store_errors():
        async for chunk in chunks:
            received += len(chunk)
            yield chunk

    if received < file_size:
        raise FileCenterIOError(
            f"Chunks of file_id={file_id} ended after {received} of {file_size} bytes"
        )


def _to_file_item(ctx: StoreContext, row: Row) -> FileItem:
    file_id = _required(row, "id", str)
    file_size = _required(row, "file_size", int)

    if row.file_data is not None:
        file_data = FileData(buffer=bytes(row.file_data))
    elif row.chunk_id is not None:
        file_data = FileData(
            stream=_sized_stream(ctx.chunk_store.read_chunks(file_id), file_id, file_size)
        )
    else:
        raise DocumentError("file_data", "and chunk_id are both missing")

    return FileItem(
        id=file_id,
        create_time=ensure_aware(_required(row, "create_time", object)),
        expire_at=ensure_aware(row.expire_at) if row.expire_at is not None else None,
        mime_type=_required(row, "mime_type", str),
        file_size=file_size,
        file_name=_required(row, "file_name", str),
        file_data=file_data,
    )


async def check_exists(ctx: StoreContext, file_id: str) -> bool:
    """Whether a record with this id exists. Never consumes temporary files."""
    with ctx.session_factory() as db:
        found = db.execute(select(FileRecord.id).where(FileRecord.id == file_id)).first()
    return found is not None


async def get(ctx: StoreContext, file_id: str) -> FileItem | None:
    """
    Retrieve a file by id.

    A temporary file is deleted by the call that retrieves it. If a
    concurrent call consumed it first, or its lifetime has passed, None is
    returned; the chunks of an expired file are removed on the way.

    Args:
        ctx: Store collaborators
        file_id: Record id

    Returns:
        The file, or None if there is no such (live) file

    Raises:
        DocumentError: If the stored record is malformed
        StoreError: If the database fails
    """
    db = ctx.session_factory()
    try:
        row = db.execute(select(*ITEM_COLUMNS).where(FileRecord.id == file_id)).first()
        if row is None:
            return None

        if row.expire_at is not None:
            row = db.execute(
                delete(FileRecord)
                .where(FileRecord.id == file_id)
                .returning(*ITEM_COLUMNS)
                .execution_options(synchronize_session=False)
            ).first()
            db.commit()

            if row is None:
                logger.info(f"Temporary file_id={file_id} was consumed by another reader")
                return None
    finally:
        db.close()

    if row.expire_at is not None and ensure_aware(row.expire_at) < utcnow():
        logger.info(f"Temporary file_id={file_id} has expired")
        if row.chunk_id is not None:
            try:
                await ctx.chunk_store.delete_chunks(file_id)
            except Exception as e:
                logger.warning(f"Failed to delete chunks of expired file_id={file_id}: {str(e)}")
        return None

    return _to_file_item(ctx, row)
