"""
Persistent engine settings.

The settings table holds the size threshold, the creation time of the
store (which keys the id tokens) and the schema version. The first
FileCenter opened on a database initialises them; later ones load them.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from file_center.config import MAX_FILE_SIZE_THRESHOLD, VERSION
from file_center.exceptions import (
    DatabaseTooNewError,
    DocumentError,
    FileSizeThresholdError,
    VersionError,
)
from file_center.logging_config import setup_logging
from file_center.models.setting import (
    SETTING_CREATE_TIME,
    SETTING_FILE_SIZE_THRESHOLD,
    SETTING_VERSION,
    FileCenterSetting,
)
from file_center.utils.datetime import from_epoch_millis, to_epoch_millis, utcnow

logger = setup_logging()


@dataclass
class EngineSettings:
    file_size_threshold: int
    create_time: datetime
    version: int


def validate_threshold(value: Any) -> int:
    """
    Check that a size threshold is an integer in (0, MAX_FILE_SIZE_THRESHOLD].

    Raises:
        FileSizeThresholdError: If it is not
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise FileSizeThresholdError(value, MAX_FILE_SIZE_THRESHOLD)
    if value <= 0 or value > MAX_FILE_SIZE_THRESHOLD:
        raise FileSizeThresholdError(value, MAX_FILE_SIZE_THRESHOLD)
    return value


def _load_or_init(db: Session, key: str, initial: Any) -> Any:
    """Return the stored value for key, storing initial first if there is none."""
    stored = db.get(FileCenterSetting, key)
    if stored is not None:
        return stored.value

    db.add(FileCenterSetting(id=key, value=initial))
    try:
        db.commit()
    except IntegrityError:
        # Another instance initialised the same key first; its value wins
        db.rollback()
        return db.get(FileCenterSetting, key).value

    logger.info(f"Initialized setting {key}={initial!r}")
    return initial


def _check_version(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise VersionError(f"The stored version {value!r} is not a positive integer")
    if value > VERSION:
        raise DatabaseTooNewError(VERSION, value)
    return value


def load_settings(
    session_factory: sessionmaker[Session], initial_file_size_threshold: int
) -> EngineSettings:
    """
    Load the engine settings, initialising any that are missing.

    A stored threshold takes precedence over initial_file_size_threshold,
    which only seeds a fresh store.

    Raises:
        FileSizeThresholdError: If the stored threshold is out of range
        VersionError: If the stored version is malformed
        DatabaseTooNewError: If the store was written by a newer version
    """
    db = session_factory()
    try:
        threshold = _load_or_init(db, SETTING_FILE_SIZE_THRESHOLD, initial_file_size_threshold)
        create_time_ms = _load_or_init(db, SETTING_CREATE_TIME, to_epoch_millis(utcnow()))
        version = _load_or_init(db, SETTING_VERSION, VERSION)
    finally:
        db.close()

    if isinstance(create_time_ms, bool) or not isinstance(create_time_ms, int):
        raise DocumentError(SETTING_CREATE_TIME, "is not an integer")

    return EngineSettings(
        file_size_threshold=validate_threshold(threshold),
        create_time=from_epoch_millis(create_time_ms),
        version=_check_version(version),
    )


def save_threshold(session_factory: sessionmaker[Session], file_size_threshold: int) -> None:
    db = session_factory()
    try:
        result = db.execute(
            update(FileCenterSetting)
            .where(FileCenterSetting.id == SETTING_FILE_SIZE_THRESHOLD)
            .values(value=file_size_threshold)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            db.add(FileCenterSetting(id=SETTING_FILE_SIZE_THRESHOLD, value=file_size_threshold))
        db.commit()
    finally:
        db.close()

    logger.info(f"File size threshold set to {file_size_threshold}")
