"""
Integration tests for the put family: representation choice, deduplication,
temporary files and failure cleanup.
"""
import asyncio
import threading

import pytest
from sqlalchemy import update

from file_center.config import DEFAULT_MIME_TYPE
from file_center.exceptions import FileCenterIOError, MimeTypeError, StoreError
from file_center.file_center import FileCenter
from file_center.models.file_record import FileRecord
from file_center.services import ingestion
from file_center.services.ingestion import read_lookahead, resolve_mime_type
from file_center.utils.hashing import hash_buffer
from tests.constants import TEST_THRESHOLD
from tests.helpers import (
    AsyncReader,
    FailingReader,
    SyncReader,
    count_chunks,
    count_records,
    get_record,
)

T = TEST_THRESHOLD


def _content(size: int, seed: int = 0) -> bytes:
    return bytes((i * 7 + seed) % 251 for i in range(size))


class TestResolveMimeType:
    """MIME type resolution tests"""

    def test_default(self):
        assert resolve_mime_type(None) == DEFAULT_MIME_TYPE

    def test_guess_from_path(self):
        assert resolve_mime_type(None, "report.pdf") == "application/pdf"

    def test_unknown_extension(self):
        assert resolve_mime_type(None, "data.unknownext") == DEFAULT_MIME_TYPE

    def test_caller_type_wins(self):
        assert resolve_mime_type("text/plain", "report.pdf") == "text/plain"

    def test_parameters_allowed(self):
        assert resolve_mime_type("text/plain; charset=utf-8") == "text/plain; charset=utf-8"

    def test_malformed(self):
        with pytest.raises(MimeTypeError) as exc:
            resolve_mime_type("not a mime type")
        assert exc.value.mime_type == "not a mime type"


class TestLookahead:
    """Reader lookahead tests"""

    @pytest.mark.asyncio
    async def test_short_source(self):
        lookahead = await read_lookahead(SyncReader(b"x" * T), T)

        assert not lookahead.is_large
        assert lookahead.buffer == b"x" * T

    @pytest.mark.asyncio
    async def test_large_source(self):
        reader = SyncReader(_content(T * 3))
        lookahead = await read_lookahead(reader, T)

        assert lookahead.is_large
        assert lookahead.buffer == _content(T * 3)[:T + 1]
        assert reader.offset == T + 1

    @pytest.mark.asyncio
    async def test_trickling_async_source(self):
        """Short reads are retried until threshold + 1 bytes arrive."""
        lookahead = await read_lookahead(AsyncReader(_content(T + 1), max_read=5), T)

        assert lookahead.is_large
        assert lookahead.buffer == _content(T + 1)


class TestRepresentation:
    """Threshold boundary tests"""

    @pytest.mark.asyncio
    async def test_threshold_is_inline(self, center, db):
        file_id = await center.put_by_buffer(_content(T), "exact.bin")

        record = get_record(db, file_id)
        assert record.file_data == _content(T)
        assert record.chunk_id is None
        assert count_chunks(db, file_id) == 0

    @pytest.mark.asyncio
    async def test_over_threshold_is_chunked(self, center, db):
        file_id = await center.put_by_buffer(_content(T + 1), "over.bin")

        record = get_record(db, file_id)
        assert record.file_data is None
        assert record.chunk_id is not None
        assert record.file_size == T + 1
        assert count_chunks(db, file_id) == 2

    @pytest.mark.asyncio
    async def test_chunk_sizes(self, center, db):
        file_id = await center.put_by_buffer(_content(10 * T + 137), "big.bin")

        chunks = [chunk async for chunk in center._ctx.chunk_store.read_chunks(file_id)]
        assert [len(chunk) for chunk in chunks[:-1]] == [T] * 12
        assert len(chunks[-1]) == 137 - 2 * T
        assert b"".join(chunks) == _content(10 * T + 137)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("size", [0, T - 1, T, T + 1, 10 * T + 137])
    async def test_reader_matches_buffer_representation(self, center, db, size):
        content = _content(size)
        file_id = await center.put_by_reader_temporarily(SyncReader(content), "r.bin")

        record = get_record(db, file_id)
        assert record.file_size == size
        assert (record.chunk_id is not None) == (size > T)

    @pytest.mark.asyncio
    async def test_path_chunked(self, center, db, tmp_path):
        file_path = tmp_path / "big.bin"
        file_path.write_bytes(_content(3 * T + 5))

        file_id = await center.put_by_path(file_path)

        record = get_record(db, file_id)
        assert record.file_name == "big.bin"
        assert record.chunk_id is not None
        assert count_chunks(db, file_id) == 4

    @pytest.mark.asyncio
    async def test_path_grown_after_stat_is_chunked(self, center, db, tmp_path, monkeypatch):
        """A file that outgrew the threshold after it was stat'ed is not stored inline."""
        content = _content(3 * T + 5)
        file_path = tmp_path / "growing.bin"
        file_path.write_bytes(content)
        monkeypatch.setattr(ingestion, "_stat_size", lambda path: T)

        file_id = await center.put_by_path(file_path)

        record = get_record(db, file_id)
        assert record.file_data is None
        assert record.chunk_id is not None
        assert record.file_size == 3 * T + 5
        assert count_chunks(db, file_id) == 4
        assert await (await center.get(file_id)).file_data.read_all() == content

    @pytest.mark.asyncio
    async def test_path_metadata_defaults(self, center, db, tmp_path):
        file_path = tmp_path / "notes.txt"
        file_path.write_bytes(b"hello")

        file_id = await center.put_by_path(file_path)

        record = get_record(db, file_id)
        assert record.file_name == "notes.txt"
        assert record.mime_type == "text/plain"
        assert record.count == 1
        assert record.expire_at is None

    @pytest.mark.asyncio
    async def test_hash_is_stored(self, center, db):
        file_id = await center.put_by_buffer(b"hashed", "h.bin")

        record = get_record(db, file_id)
        assert (record.hash_1, record.hash_2, record.hash_3, record.hash_4) == tuple(
            hash_buffer(b"hashed")
        )


class TestDeduplication:
    """Content deduplication tests"""

    @pytest.mark.asyncio
    async def test_same_content_same_id(self, center, db, tmp_path):
        content = _content(5 * T)
        file_path = tmp_path / "same.bin"
        file_path.write_bytes(content)

        ids = {
            await center.put_by_path(file_path),
            await center.put_by_buffer(content, "b.bin"),
            await center.put_by_reader(SyncReader(content), "r.bin"),
            await center.put_by_reader(AsyncReader(content, max_read=7), "ar.bin"),
        }

        assert len(ids) == 1
        file_id = ids.pop()
        assert get_record(db, file_id).count == 4
        assert count_records(db) == 1
        assert count_chunks(db) == 5

    @pytest.mark.asyncio
    async def test_first_name_and_mime_win(self, center, db):
        file_id = await center.put_by_buffer(b"shared", "first.txt", "text/plain")
        await center.put_by_buffer(b"shared", "second.bin", "application/x-other")

        record = get_record(db, file_id)
        assert record.file_name == "first.txt"
        assert record.mime_type == "text/plain"

    @pytest.mark.asyncio
    async def test_different_content_different_ids(self, center):
        first = await center.put_by_buffer(b"one", "a.txt")
        second = await center.put_by_buffer(b"two", "a.txt")

        assert first != second

    @pytest.mark.asyncio
    async def test_reader_duplicate_discards_speculative_chunks(self, center, db):
        content = _content(4 * T)
        await center.put_by_reader(SyncReader(content), "first.bin")
        chunks_before = count_chunks(db)

        await center.put_by_reader(SyncReader(content), "second.bin")

        assert count_chunks(db) == chunks_before

    @pytest.mark.asyncio
    async def test_dedup_ignores_threshold_changes(self, center, db):
        content = _content(2 * T)
        first = await center.put_by_buffer(content, "a.bin")

        await center.set_size_threshold(4 * T)
        second = await center.put_by_buffer(content, "b.bin")

        assert second == first
        assert get_record(db, first).chunk_id is not None
        assert get_record(db, first).count == 2

    @pytest.mark.asyncio
    async def test_joins_record_pending_deletion(self, center, db):
        """A record whose count dropped to zero is revived by a matching put."""
        file_id = await center.put_by_buffer(b"revived", "r.txt")
        db.execute(update(FileRecord).where(FileRecord.id == file_id).values(count=0))
        db.commit()

        assert await center.put_by_buffer(b"revived", "r.txt") == file_id
        assert get_record(db, file_id).count == 1

    @pytest.mark.asyncio
    async def test_concurrent_puts(self, center, database_url, db, monkeypatch):
        """Two puts of new content racing from separate threads end up on one record."""
        other = FileCenter(database_url)
        content = _content(3 * T)

        both_missed = threading.Barrier(2, timeout=10)
        waited = set()
        inserts = []
        increment_count = ingestion._increment_count
        insert_record = ingestion._insert_record

        def increment_after_both_missed(session, file_hash):
            file_id = increment_count(session, file_hash)
            if file_id is None and threading.get_ident() not in waited:
                waited.add(threading.get_ident())
                both_missed.wait()
            return file_id

        def recording_insert(session, record):
            inserted = insert_record(session, record)
            inserts.append(inserted)
            return inserted

        monkeypatch.setattr(ingestion, "_increment_count", increment_after_both_missed)
        monkeypatch.setattr(ingestion, "_insert_record", recording_insert)

        try:
            ids = await asyncio.gather(
                asyncio.to_thread(asyncio.run, center.put_by_buffer(content, "a.bin")),
                asyncio.to_thread(asyncio.run, other.put_by_buffer(content, "b.bin")),
            )
        finally:
            other.close()

        assert ids[0] == ids[1]
        assert sorted(inserts) == [False, True]
        assert get_record(db, ids[0]).count == 2
        assert count_records(db) == 1
        assert count_chunks(db) == 3


class TestInsertRace:
    """Insert-or-join retry tests"""

    @pytest.mark.asyncio
    async def test_lost_insert_race_joins(self, center, db, monkeypatch):
        """An insert that hits the unique hash key retries the join."""
        content = _content(3 * T)
        first = await center.put_by_buffer(content, "a.bin")

        original = ingestion._increment_count
        calls = []

        def stale_increment(session, file_hash):
            calls.append(file_hash)
            if len(calls) == 1:
                return None
            return original(session, file_hash)

        monkeypatch.setattr(ingestion, "_increment_count", stale_increment)

        second = await center.put_by_buffer(content, "b.bin")

        assert second == first
        assert len(calls) == 2
        assert get_record(db, first).count == 2
        assert count_records(db) == 1
        assert count_chunks(db) == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, center, db, monkeypatch):
        content = _content(3 * T)
        await center.put_by_buffer(content, "a.bin")
        chunks_before = count_chunks(db)

        monkeypatch.setattr(ingestion, "_increment_count", lambda session, file_hash: None)

        with pytest.raises(StoreError):
            await center.put_by_buffer(content, "b.bin")

        assert count_records(db) == 1
        assert count_chunks(db) == chunks_before


class TestTemporary:
    """Temporary file ingestion tests"""

    @pytest.mark.asyncio
    async def test_temporary_files_never_dedup(self, center, db):
        first = await center.put_by_buffer_temporarily(b"same", "t.txt")
        second = await center.put_by_buffer_temporarily(b"same", "t.txt")
        permanent = await center.put_by_buffer(b"same", "t.txt")

        assert len({first, second, permanent}) == 3

    @pytest.mark.asyncio
    async def test_temporary_record_fields(self, center, db):
        file_id = await center.put_by_buffer_temporarily(_content(2 * T), "t.bin")

        record = get_record(db, file_id)
        assert record.hash_1 is None
        assert record.count == 1
        assert record.expire_at is not None

        ttl = record.expire_at - record.create_time
        assert ttl.total_seconds() == pytest.approx(60, abs=1)

    @pytest.mark.asyncio
    async def test_temporary_chunks_expire(self, center, db):
        from file_center.models.file_chunk import FileChunk

        file_id = await center.put_by_reader_temporarily(SyncReader(_content(2 * T)), "t.bin")

        db.expire_all()
        chunks = db.query(FileChunk).filter(FileChunk.file_id == file_id).all()
        assert len(chunks) == 2
        assert all(chunk.expire_at is not None for chunk in chunks)

    @pytest.mark.asyncio
    async def test_temporary_path(self, center, db, tmp_path):
        file_path = tmp_path / "temp.bin"
        file_path.write_bytes(_content(T + 1))

        file_id = await center.put_by_path_temporarily(file_path, "renamed.bin")

        record = get_record(db, file_id)
        assert record.file_name == "renamed.bin"
        assert record.is_temporary


class TestFailures:
    """Put failure and cleanup tests"""

    @pytest.mark.asyncio
    async def test_missing_path(self, center, db, tmp_path):
        with pytest.raises(FileCenterIOError):
            await center.put_by_path(tmp_path / "missing.bin")

        assert count_records(db) == 0

    @pytest.mark.asyncio
    async def test_reader_error_discards_chunks(self, center, db):
        reader = FailingReader(_content(5 * T), fail_after=3 * T, error=OSError("disk gone"))

        with pytest.raises(FileCenterIOError):
            await center.put_by_reader(reader, "broken.bin")

        assert count_records(db) == 0
        assert count_chunks(db) == 0

    @pytest.mark.asyncio
    async def test_cancellation_discards_chunks(self, center, db):
        reader = FailingReader(
            _content(5 * T), fail_after=3 * T, error=asyncio.CancelledError()
        )

        with pytest.raises(asyncio.CancelledError):
            await center.put_by_reader_temporarily(reader, "cancelled.bin")

        assert count_records(db) == 0
        assert count_chunks(db) == 0

    @pytest.mark.asyncio
    async def test_malformed_mime_type(self, center, db):
        with pytest.raises(MimeTypeError):
            await center.put_by_buffer(b"data", "a.bin", "bogus")

        assert count_records(db) == 0
