"""
File API schemas.

This module defines Pydantic schemas for the file endpoints: upload
results, existence probes, deletions and garbage collection reports.
"""
from pydantic import BaseModel


class FileUploadResponseData(BaseModel):
    """File upload response data."""

    id_token: str
    """Token identifying the stored file in later requests."""

    file_name: str
    """Display name of the stored file."""

    file_size: int
    """Size of the uploaded content in bytes."""

    temporary: bool = False
    """Whether the file is deleted after its first download."""

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "id_token": "3XbT1nq8dGzVrK0u2pLwS7mE4fY",
                    "file_name": "report.pdf",
                    "file_size": 524288,
                    "temporary": False,
                }
            ]
        }
    }


class FileExistsResponseData(BaseModel):
    """File existence response data."""

    exists: bool


class FileDeleteResponseData(BaseModel):
    """File deletion response data."""

    file_size: int
    """Size of the file whose reference was released."""


class GarbageReportResponseData(BaseModel):
    """Garbage collection response data."""

    dangling_records: int
    """Records removed because their first chunk was missing."""

    exhausted_records: int
    """Records removed because no reference was left."""

    orphaned_chunks: int
    """Chunks removed because no record owned them."""
