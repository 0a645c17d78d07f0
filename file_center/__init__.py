"""
Deduplicating, reference-counted file store on top of SQLAlchemy.

Identical content is stored once and shared; large content is split into
chunks and streamed; temporary files vanish after one read or a short
lifetime.
"""

from file_center.config import (
    DEFAULT_FILE_SIZE_THRESHOLD,
    DEFAULT_MIME_TYPE,
    MAX_FILE_SIZE_THRESHOLD,
    VERSION,
)
from file_center.exceptions import (
    DatabaseTooNewError,
    DocumentError,
    FileCenterError,
    FileCenterIOError,
    FileSizeThresholdError,
    IDTokenError,
    MimeTypeError,
    StoreError,
    StreamConsumedError,
    VersionError,
)
from file_center.file_center import FileCenter
from file_center.file_item import FileData, FileItem
from file_center.services.cleanup import ExpiredReport, GarbageReport

__all__ = [
    "DEFAULT_FILE_SIZE_THRESHOLD",
    "DEFAULT_MIME_TYPE",
    "MAX_FILE_SIZE_THRESHOLD",
    "VERSION",
    "DatabaseTooNewError",
    "DocumentError",
    "ExpiredReport",
    "FileCenter",
    "FileCenterError",
    "FileCenterIOError",
    "FileData",
    "FileItem",
    "FileSizeThresholdError",
    "GarbageReport",
    "IDTokenError",
    "MimeTypeError",
    "StoreError",
    "StreamConsumedError",
    "VersionError",
]
