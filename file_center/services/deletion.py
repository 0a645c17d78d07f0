"""
Reference-counted deletion.

Deleting a file removes one reference. The record and its chunks go away
only when the last reference is released.
"""
from sqlalchemy import delete as sql_delete
from sqlalchemy import update

from file_center.logging_config import setup_logging
from file_center.models.file_record import FileRecord
from file_center.services.context import StoreContext

logger = setup_logging()


async def delete(ctx: StoreContext, file_id: str) -> int | None:
    """
    Release one reference to a file.

    The decrement is a single atomic statement. When it leaves the count at
    zero or below, the record is deleted with a guard on the count, so a
    put that joined the record in between keeps it alive.

    Args:
        ctx: Store collaborators
        file_id: Record id

    Returns:
        The file size, or None if no such record exists

    Raises:
        StoreError: If the database fails
    """
    db = ctx.session_factory()
    try:
        row = db.execute(
            update(FileRecord)
            .where(FileRecord.id == file_id)
            .values(count=FileRecord.count - 1)
            .returning(FileRecord.count, FileRecord.file_size, FileRecord.chunk_id)
            .execution_options(synchronize_session=False)
        ).first()
        db.commit()

        if row is None:
            return None

        # Unpacked because row.count is the tuple method
        count, file_size, chunk_id = row
        if count > 0:
            logger.info(f"Released a reference to file_id={file_id}, {count} remaining")
            return file_size

        result = db.execute(
            sql_delete(FileRecord)
            .where(FileRecord.id == file_id, FileRecord.count <= 0)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        removed = result.rowcount > 0
    finally:
        db.close()

    if removed and chunk_id is not None:
        await ctx.chunk_store.delete_chunks(file_id)

    if removed:
        logger.info(f"Deleted file_id={file_id}, size={file_size}")
    return file_size
