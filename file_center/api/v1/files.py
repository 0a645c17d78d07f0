"""
File API endpoints.

This module exposes the file center over HTTP: upload, download,
existence checks, reference deletion and garbage collection. Files are
addressed by id tokens rather than raw record ids.
"""
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.responses import StreamingResponse

from file_center.dependencies.file_center import get_file_center
from file_center.exceptions import FileCenterIOError, IDTokenError, MimeTypeError
from file_center.file_center import FileCenter
from file_center.logging_config import setup_logging
from file_center.schemas.common import ERROR_RESPONSES, APIResponse
from file_center.schemas.files import (
    FileDeleteResponseData,
    FileExistsResponseData,
    FileUploadResponseData,
    GarbageReportResponseData,
)

router = APIRouter(prefix="/files", tags=["files"], responses=ERROR_RESPONSES)

# Setup logger for error tracking
logger = setup_logging()


class CountingReader:
    """Wrap an UploadFile and count the bytes read through it."""

    def __init__(self, upload: UploadFile):
        self.upload = upload
        self.bytes_read = 0

    async def read(self, size: int = -1) -> bytes:
        data = await self.upload.read(size)
        self.bytes_read += len(data)
        return data


def content_disposition(file_name: str) -> str:
    quoted = quote(file_name)
    if quoted != file_name:
        return f"attachment; filename*=utf-8''{quoted}"
    return f'attachment; filename="{file_name}"'


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={
            "success": False,
            "error": "Not Found",
            "message": "File not found",
        },
    )


def _decode_id_token(center: FileCenter, id_token: str) -> str:
    try:
        return center.decrypt_id_token(id_token)
    except IDTokenError as e:
        logger.warning(f"Rejected id token {id_token!r}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "success": False,
                "error": "Bad Request",
                "message": "Invalid file id token",
            },
        )


@router.post(
    "",
    response_model=APIResponse[FileUploadResponseData],
    status_code=status.HTTP_201_CREATED,
)
async def upload_file(
    file: UploadFile = File(...),
    temporary: bool = Form(False),
    mime_type: str | None = Form(None),
    center: FileCenter = Depends(get_file_center),
):
    """
    Upload a file.

    The upload is streamed into the file center. Content that is already
    stored is not stored again; the returned token then refers to the
    existing file and holds one more reference to it.

    Temporary files are never deduplicated and are deleted by their first
    download or after their short lifetime, whichever comes first.

    Example:
    ```bash
    curl -X POST http://localhost:8000/api/v1/files \\
      -F "file=@report.pdf" \\
      -F "temporary=false"
    ```

    Args:
        file: The file to store.
        temporary: Store as a one-shot, expiring file.
        mime_type: MIME type to record; defaults to the upload's content type.
        center: File center.

    Returns:
        APIResponse with FileUploadResponseData containing the id token.

    Raises:
        HTTPException 400: If the MIME type is malformed or the upload cannot be read.
    """
    file_name = file.filename or "file"
    mime_type = mime_type or file.content_type or None
    reader = CountingReader(file)

    try:
        if temporary:
            file_id = await center.put_by_reader_temporarily(reader, file_name, mime_type)
        else:
            file_id = await center.put_by_reader(reader, file_name, mime_type)
    except MimeTypeError as e:
        logger.warning(f"Upload rejected: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "success": False,
                "error": "Bad Request",
                "message": str(e),
            },
        )
    except FileCenterIOError as e:
        logger.warning(f"Upload of {file_name!r} could not be read: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "success": False,
                "error": "Bad Request",
                "message": "Failed to read the uploaded file",
            },
        )

    return APIResponse(
        success=True,
        data=FileUploadResponseData(
            id_token=center.encrypt_id(file_id),
            file_name=file_name,
            file_size=reader.bytes_read,
            temporary=temporary,
        ),
    )


@router.post(
    "/garbage",
    response_model=APIResponse[GarbageReportResponseData],
    status_code=status.HTTP_200_OK,
)
async def clear_garbage(center: FileCenter = Depends(get_file_center)):
    """Remove records and chunks that no live file can reach."""
    report = await center.clear_garbage()

    return APIResponse(
        success=True,
        data=GarbageReportResponseData(
            dangling_records=report.dangling_records,
            exhausted_records=report.exhausted_records,
            orphaned_chunks=report.orphaned_chunks,
        ),
    )


@router.get("/{id_token}", status_code=status.HTTP_200_OK)
async def download_file(id_token: str, center: FileCenter = Depends(get_file_center)):
    """
    Download a file.

    The body is streamed chunk by chunk for large files. Downloading a
    temporary file consumes it.

    Raises:
        HTTPException 400: If the id token is malformed.
        HTTPException 404: If the file does not exist, has expired or was consumed.
    """
    file_id = _decode_id_token(center, id_token)

    item = await center.get(file_id)
    if item is None:
        raise _not_found()

    logger.info(f"Serving file_id={item.id}, size={item.file_size}, temporary={item.is_temporary}")

    return StreamingResponse(
        item.file_data,
        media_type=item.mime_type,
        headers={
            "Content-Disposition": content_disposition(item.file_name),
            "Content-Length": str(item.file_size),
        },
    )


@router.get(
    "/{id_token}/exists",
    response_model=APIResponse[FileExistsResponseData],
    status_code=status.HTTP_200_OK,
)
async def check_file_exists(id_token: str, center: FileCenter = Depends(get_file_center)):
    """Check whether a file exists without consuming it."""
    file_id = _decode_id_token(center, id_token)
    exists = await center.check_exists(file_id)

    return APIResponse(success=True, data=FileExistsResponseData(exists=exists))


@router.delete(
    "/{id_token}",
    response_model=APIResponse[FileDeleteResponseData],
    status_code=status.HTTP_200_OK,
)
async def delete_file(id_token: str, center: FileCenter = Depends(get_file_center)):
    """
    Release one reference to a file.

    The content is removed once the last reference is released.

    Raises:
        HTTPException 400: If the id token is malformed.
        HTTPException 404: If the file does not exist.
    """
    file_id = _decode_id_token(center, id_token)

    file_size = await center.delete(file_id)
    if file_size is None:
        raise _not_found()

    return APIResponse(success=True, data=FileDeleteResponseData(file_size=file_size))
