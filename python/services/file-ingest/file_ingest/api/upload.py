"""
Upload API endpoints.
Multipart (many files per request) and raw streaming (one file per request) uploads.
"""

import logging
from typing import List

from fastapi import APIRouter, File, HTTPException, Request, UploadFile, status
from fastapi.responses import StreamingResponse

from shared_schemas.common import SuccessResponse
from shared_schemas.file_service import FileRecord
from file_ingest.core.config import settings
from file_ingest.core.dependencies import Coordinator, Processor, Repository
from file_ingest.core.errors import SinkError, SourceError
from file_ingest.ingest.coordinator import FilePart
from file_ingest.utils.chunks import iter_request_body, iter_upload_file

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/file",
    tags=["upload"]
)

NDJSON_MEDIA_TYPE = "application/x-ndjson"


@router.post("/upload", status_code=status.HTTP_207_MULTI_STATUS)
async def upload_files(
    coordinator: Coordinator,
    file: List[UploadFile] = File(...)
):
    """
    Upload one or more files as multipart form data (repeated `file` field).

    Each file is ingested independently: a file that fails is left out of
    the response while the others are still stored.

    Example:
        curl -X POST "http://server/file/upload" \\
          -F "file=@report.pdf" -F "file=@photo.jpg"

    Returns:
        207 Multi-Status, one FileRecord JSON document per line (NDJSON)
        for every stored file
    """
    parts = [
        FilePart(
            file_name=upload.filename or "unnamed.bin",
            chunks=iter_upload_file(upload, settings.READ_CHUNK_SIZE)
        )
        for upload in file
    ]

    # Parts must be consumed before returning: the spooled files are closed with the request
    records = [record async for record in coordinator.process_request(parts)]

    async def ndjson():
        for record in records:
            yield record.model_dump_json() + "\n"

    return StreamingResponse(
        ndjson(),
        status_code=status.HTTP_207_MULTI_STATUS,
        media_type=NDJSON_MEDIA_TYPE
    )


@router.put("/upload/{file_name:path}", response_model=SuccessResponse[FileRecord])
async def upload_stream(
    file_name: str,
    request: Request,
    processor: Processor,
    repository: Repository
):
    """
    Upload a single file as the raw request body (streamed, never buffered whole).

    Example:
        curl -X PUT "http://server/file/upload/archive.tar.gz" \\
          --data-binary "@archive.tar.gz"

    Args:
        file_name: Name to store the file under (from URL path)
        request: FastAPI Request with raw binary body

    Returns:
        Stored FileRecord with SHA256 (base64) and size
    """
    try:
        result = await processor.process_file(file_name, iter_request_body(request))
    except SourceError as e:
        logger.error(f"[STREAM UPLOAD] Upload stream failed: {file_name} :: {e.cause}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Failed to read upload: {e.cause}"
        )
    except SinkError as e:
        logger.error(f"[STREAM UPLOAD] Storage error: {file_name} :: {e.cause}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to store file: {e.cause}"
        )

    record = await repository.save(result)
    return SuccessResponse(
        success=True,
        message="File uploaded successfully",
        data=record
    )


@router.get("/records", response_model=List[FileRecord])
async def list_records(repository: Repository):
    """List metadata of every stored file."""
    return await repository.list()


@router.get("/records/{record_id}", response_model=FileRecord)
async def get_record(record_id: int, repository: Repository):
    """Get metadata of one stored file."""
    record = await repository.get(record_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"File record not found: {record_id}"
        )
    return record
