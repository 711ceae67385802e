"""
Chunk sources: adapt incoming request data to async byte iterators.
"""

from typing import AsyncIterator

from fastapi import Request, UploadFile


async def iter_upload_file(upload: UploadFile, chunk_size: int) -> AsyncIterator[bytes]:
    """Read a multipart file part piece by piece."""
    while True:
        chunk = await upload.read(chunk_size)
        if not chunk:
            break
        yield chunk


async def iter_request_body(request: Request) -> AsyncIterator[bytes]:
    """Yield the raw request body as it arrives from the client."""
    async for chunk in request.stream():
        if chunk:
            yield chunk
