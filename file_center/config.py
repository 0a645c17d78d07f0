from pydantic_settings import BaseSettings

# Largest inline payload that still fits a single stored row comfortably
MAX_FILE_SIZE_THRESHOLD = 16_770_000
DEFAULT_FILE_SIZE_THRESHOLD = 261_120

# Schema version written to the settings table, bumped on incompatible changes
VERSION = 1

DEFAULT_MIME_TYPE = "application/octet-stream"


class Settings(BaseSettings):
    # Database settings
    DATABASE_URL: str = "sqlite:///./file_center.db"

    # Storage settings
    FILE_SIZE_THRESHOLD: int = DEFAULT_FILE_SIZE_THRESHOLD
    BUFFER_SIZE: int = 4096  # read size used while hashing files on disk

    # Temporary file settings
    TEMPORARY_TTL_SECONDS: int = 60
    CHUNK_TTL_SECONDS: int = 3600  # outlives the record so slow readers can finish

    # Expiry reaper settings
    REAPER_ENABLED: bool = False
    REAPER_INTERVAL_SECONDS: int = 60

    # Logging settings
    LOG_LEVEL: str = "INFO"

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
