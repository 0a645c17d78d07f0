"""
File center exceptions.

A single hierarchy rooted at FileCenterError covers every failure the
engine reports. "Not found" is never an exception: lookups return None.
"""
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError


class FileCenterError(Exception):
    """Base exception for file center operations."""

    pass


class StoreError(FileCenterError):
    """Raised when the underlying database fails a query or a write."""

    def __init__(self, error: Exception | str):
        self.error = error
        super().__init__(str(error))


class DocumentError(FileCenterError):
    """Raised when a stored field is missing or has an unexpected type."""

    def __init__(self, field: str, reason: str = "is missing"):
        self.field = field
        self.reason = reason
        super().__init__(f"Stored field '{field}' {reason}")


class FileSizeThresholdError(FileCenterError):
    """Raised when a file size threshold is outside (0, max]."""

    def __init__(self, value: object, max_value: int):
        self.value = value
        self.max_value = max_value
        super().__init__(
            f"File size threshold {value!r} must be in the range (0, {max_value}]"
        )


class VersionError(FileCenterError):
    """Raised when the stored schema version is not a positive integer."""

    pass


class DatabaseTooNewError(VersionError):
    """Raised when the store was written by a newer schema than this library supports."""

    def __init__(self, supported_latest: int, current: int):
        self.supported_latest = supported_latest
        self.current = current
        super().__init__(
            f"The current database version is {current}, "
            f"but this library only supports up to {supported_latest}"
        )


class FileCenterIOError(FileCenterError):
    """Raised when reading a source or producing a stream fails."""

    pass


class IDTokenError(FileCenterError):
    """Raised when an id token cannot be decoded into a file id."""

    pass


class MimeTypeError(FileCenterError):
    """Raised when a caller-supplied MIME type is malformed."""

    def __init__(self, mime_type: str):
        self.mime_type = mime_type
        super().__init__(f"The mime type {mime_type!r} is incorrect")


class StreamConsumedError(FileCenterError):
    """Raised when a chunk stream is iterated a second time."""

    pass


@contextmanager
def translate_store_errors() -> Iterator[None]:
    """Re-raise database driver failures as StoreError, keeping the original as cause."""
    try:
        yield
    except SQLAlchemyError as e:
        raise StoreError(e) from e
