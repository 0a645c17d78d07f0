"""
Garbage collection and expiry for the file center.

This module provides the orphan sweep that reconciles records with chunks
after crashes or interrupted operations, and the periodic reaper that
removes temporary files once their lifetime has passed.
"""
import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import delete, select

from file_center.logging_config import setup_logging
from file_center.models.file_record import FileRecord
from file_center.services.context import StoreContext
from file_center.utils.datetime import utcnow
from file_center.utils.iterables import batched

if TYPE_CHECKING:
    from file_center.file_center import FileCenter

logger = setup_logging()


@dataclass
class GarbageReport:
    """
    What one garbage collection removed.

    Attributes:
        dangling_records: Records deleted because their chunk 0 was missing
        exhausted_records: Records deleted because their count dropped to zero or below
        orphaned_chunks: Chunks deleted, both of exhausted records and without any record
    """

    dangling_records: int = 0
    exhausted_records: int = 0
    orphaned_chunks: int = 0

    @property
    def total(self) -> int:
        return self.dangling_records + self.exhausted_records + self.orphaned_chunks


@dataclass
class ExpiredReport:
    """What one expiry sweep removed."""

    expired_records: int = 0
    expired_chunks: int = 0


async def _delete_dangling_records(ctx: StoreContext) -> int:
    """Pass 1: chunked records whose chunk 0 no longer exists."""
    # Records are read before chunks: chunk 0 is always written before its record
    with ctx.session_factory() as db:
        chunked = db.execute(
            select(FileRecord.id, FileRecord.chunk_id).where(FileRecord.chunk_id.is_not(None))
        ).all()

    if not chunked:
        return 0

    first_chunk_ids = await ctx.chunk_store.list_first_chunk_ids()
    dangling_ids = [row.id for row in chunked if row.chunk_id not in first_chunk_ids]
    if not dangling_ids:
        return 0

    db = ctx.session_factory()
    try:
        deleted = 0
        for batch in batched(dangling_ids):
            result = db.execute(
                delete(FileRecord)
                .where(FileRecord.id.in_(batch))
                .execution_options(synchronize_session=False)
            )
            deleted += result.rowcount
        db.commit()
    finally:
        db.close()

    return deleted


async def _delete_exhausted_records(ctx: StoreContext) -> tuple[int, int]:
    """
    Pass 2: records whose reference count reached zero, with their chunks.

    The records go first, guarded on the count. Only the chunks of records
    actually removed are deleted, so a put that joined one in between keeps
    both the record and its content.
    """
    with ctx.session_factory() as db:
        exhausted_ids = list(
            db.execute(select(FileRecord.id).where(FileRecord.count <= 0)).scalars()
        )

    if not exhausted_ids:
        return 0, 0

    db = ctx.session_factory()
    try:
        removed = []
        for batch in batched(exhausted_ids):
            removed.extend(
                db.execute(
                    delete(FileRecord)
                    .where(FileRecord.id.in_(batch), FileRecord.count <= 0)
                    .returning(FileRecord.id, FileRecord.chunk_id)
                    .execution_options(synchronize_session=False)
                ).all()
            )
        db.commit()
    finally:
        db.close()

    chunked_ids = [row.id for row in removed if row.chunk_id is not None]
    chunks_deleted = await ctx.chunk_store.delete_chunks_of(chunked_ids) if chunked_ids else 0

    return len(removed), chunks_deleted


async def _delete_orphaned_chunks(ctx: StoreContext) -> int:
    """Pass 3: chunks whose owning record does not exist."""
    chunk_file_ids = await ctx.chunk_store.list_file_ids()
    if not chunk_file_ids:
        return 0

    with ctx.session_factory() as db:
        record_ids = set(db.execute(select(FileRecord.id)).scalars())

    orphaned_ids = chunk_file_ids - record_ids
    if not orphaned_ids:
        return 0

    return await ctx.chunk_store.delete_chunks_of(sorted(orphaned_ids))


async def clear_garbage(ctx: StoreContext) -> GarbageReport:
    """
    Remove data that no live record can reach.

    Three independent passes, each safe to repeat:
    1. Chunked records whose chunk 0 is gone
    2. Records whose reference count is zero or below, and their chunks
    3. Chunks that belong to no record

    Passes 1 and 2 only remove records that are unreachable when the pass
    commits, even with puts and deletes running alongside. Chunks of a put
    still in flight have no record yet and count as orphans in pass 3.

    Returns:
        GarbageReport with the counts removed by each pass

    Raises:
        StoreError: If the database fails
    """
    report = GarbageReport()

    report.dangling_records = await _delete_dangling_records(ctx)
    report.exhausted_records, exhausted_chunks = await _delete_exhausted_records(ctx)
    report.orphaned_chunks = exhausted_chunks + await _delete_orphaned_chunks(ctx)

    logger.info(
        f"Garbage collection finished: dangling_records={report.dangling_records}, "
        f"exhausted_records={report.exhausted_records}, "
        f"orphaned_chunks={report.orphaned_chunks}"
    )
    return report


async def clear_expired(ctx: StoreContext) -> ExpiredReport:
    """
    Remove temporary files whose lifetime has passed.

    Expired records are deleted together with all of their chunks. Chunks
    are also removed on their own once their longer lifetime has passed,
    which covers temporary files that were consumed but never fully read.

    Returns:
        ExpiredReport with the number of records and chunks removed
    """
    now = utcnow()
    report = ExpiredReport()

    db = ctx.session_factory()
    try:
        expired = db.execute(
            delete(FileRecord)
            .where(FileRecord.expire_at.is_not(None), FileRecord.expire_at < now)
            .returning(FileRecord.id, FileRecord.chunk_id)
            .execution_options(synchronize_session=False)
        ).all()
        db.commit()
    finally:
        db.close()

    report.expired_records = len(expired)

    chunked_ids = [row.id for row in expired if row.chunk_id is not None]
    if chunked_ids:
        report.expired_chunks += await ctx.chunk_store.delete_chunks_of(chunked_ids)
    report.expired_chunks += await ctx.chunk_store.delete_expired_chunks(now)

    if report.expired_records or report.expired_chunks:
        logger.info(
            f"Removed {report.expired_records} expired records "
            f"and {report.expired_chunks} expired chunks"
        )
    return report


async def run_reaper(center: "FileCenter", interval_seconds: float) -> None:
    """
    Call clear_expired on the center every interval_seconds until cancelled.

    Failures are logged and the loop keeps going.

    Args:
        center: File center to sweep
        interval_seconds: Pause between two sweeps
    """
    logger.info(f"Expiry reaper started, interval={interval_seconds}s")
    try:
        while True:
            try:
                await center.clear_expired()
            except Exception as e:
                logger.error(f"Expiry sweep failed: {str(e)}", exc_info=True)

            await asyncio.sleep(interval_seconds)
    except asyncio.CancelledError:
        logger.info("Expiry reaper stopped")
        raise
