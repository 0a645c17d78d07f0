"""
File record database model.

This module defines the FileRecord model, one row per logical file,
holding its metadata, reference count and either the inline content
or a pointer into the chunk table.
"""
from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Integer, LargeBinary, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from file_center.database import Base


class FileRecord(Base):
    """
    File record model.

    Attributes:
        id: Primary key, 32-char hex of a random UUID
        hash_1..hash_4: Content fingerprint split into four signed 64-bit integers
            (NULL for temporary files, which are never deduplicated)
        file_size: Size of the original content in bytes
        file_name: Display name
        mime_type: MIME type of the content
        create_time: Creation timestamp (UTC)
        expire_at: Expiration timestamp, only set for temporary files
        count: Reference count
        file_data: Inline content, set when the file fits the size threshold
        chunk_id: Id of chunk 0 in the chunk table, set for chunked files
    """

    __tablename__ = "file_center"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    hash_1: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    hash_2: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    hash_3: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    hash_4: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    file_size: Mapped[int] = mapped_column(BigInteger)
    file_name: Mapped[str] = mapped_column(Text)
    mime_type: Mapped[str] = mapped_column(String(255))
    create_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    expire_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
    count: Mapped[int] = mapped_column(Integer, index=True)
    file_data: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)
    chunk_id: Mapped[str | None] = mapped_column(String(32), nullable=True, index=True)

    # NULL hashes never collide, so temporary files stay out of the dedup key
    __table_args__ = (
        UniqueConstraint("hash_1", "hash_2", "hash_3", "hash_4", name="uq_file_center_hash"),
    )

    @property
    def is_temporary(self) -> bool:
        return self.expire_at is not None

    def __repr__(self) -> str:
        return f"<FileRecord(id={self.id}, file_name={self.file_name}, count={self.count})>"
