from typing import Any

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from file_center.database import Base

SETTING_FILE_SIZE_THRESHOLD = "file_size_threshold"
SETTING_CREATE_TIME = "create_time"
SETTING_VERSION = "version"


class FileCenterSetting(Base):
    """Key/value row of the engine settings table."""

    __tablename__ = "file_center_settings"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[Any] = mapped_column(JSON)

    def __repr__(self) -> str:
        return f"<FileCenterSetting(id={self.id}, value={self.value})>"
