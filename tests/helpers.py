from file_center.models.file_chunk import FileChunk
from file_center.models.file_record import FileRecord


def get_record(db, file_id) -> FileRecord | None:
    db.expire_all()
    return db.get(FileRecord, file_id)


def count_chunks(db, file_id=None) -> int:
    db.expire_all()
    query = db.query(FileChunk)
    if file_id is not None:
        query = query.filter(FileChunk.file_id == file_id)
    return query.count()


def count_records(db) -> int:
    db.expire_all()
    return db.query(FileRecord).count()


class SyncReader:
    """File-like reader over bytes that hands out at most max_read bytes per call."""

    def __init__(self, data: bytes, max_read: int | None = None):
        self.data = data
        self.offset = 0
        self.max_read = max_read

    def read(self, size: int = -1) -> bytes:
        if size < 0:
            size = len(self.data) - self.offset
        if self.max_read is not None:
            size = min(size, self.max_read)
        chunk = self.data[self.offset:self.offset + size]
        self.offset += len(chunk)
        return chunk


class AsyncReader(SyncReader):
    async def read(self, size: int = -1) -> bytes:
        return SyncReader.read(self, size)


class FailingReader(SyncReader):
    """Reader that raises after handing out fail_after bytes."""

    def __init__(self, data: bytes, fail_after: int, error: BaseException):
        super().__init__(data)
        self.fail_after = fail_after
        self.error = error

    def read(self, size: int = -1) -> bytes:
        if self.offset >= self.fail_after:
            raise self.error
        return super().read(min(size, self.fail_after - self.offset))
