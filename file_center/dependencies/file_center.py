"""
File center dependency injection for FastAPI.

This module provides the FastAPI dependency that hands endpoints the
process-wide FileCenter.
"""
from functools import lru_cache

from file_center.config import settings
from file_center.file_center import FileCenter


@lru_cache
def get_file_center() -> FileCenter:
    """
    Return the FileCenter configured by the DATABASE_URL setting.

    The instance is created on first use and shared by every request.
    Tests override this dependency with a center on a scratch database.
    """
    return FileCenter(settings.DATABASE_URL)
