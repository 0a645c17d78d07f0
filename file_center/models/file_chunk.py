"""
File chunk database model.

Chunks hold the content of files larger than the size threshold, split
into fixed-size pieces ordered by their sequence number.
"""
from datetime import datetime

from sqlalchemy import DateTime, Integer, LargeBinary, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from file_center.database import Base


class FileChunk(Base):
    """
    File chunk model.

    Attributes:
        id: Primary key, 32-char hex of a random UUID
        file_id: Id of the owning FileRecord
        n: Zero-based sequence number, contiguous per file
        data: Raw chunk bytes
        expire_at: Expiration timestamp, only set for chunks of temporary files
    """

    __tablename__ = "file_center_chunks"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    file_id: Mapped[str] = mapped_column(String(32), index=True)
    n: Mapped[int] = mapped_column(Integer)
    data: Mapped[bytes] = mapped_column(LargeBinary)
    expire_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )

    __table_args__ = (
        UniqueConstraint("file_id", "n", name="uq_file_center_chunks_file_id_n"),
    )

    def __repr__(self) -> str:
        return f"<FileChunk(id={self.id}, file_id={self.file_id}, n={self.n})>"
