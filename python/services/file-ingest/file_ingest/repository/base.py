"""
Metadata persistence contract for ingested files.
"""

from typing import List, Optional, Protocol

from shared_schemas.file_service import FileRecord, UploadResult


class FileRepository(Protocol):
    """Stores one metadata record per successfully ingested file."""

    async def save(self, result: UploadResult) -> FileRecord:
        ...

    async def get(self, record_id: int) -> Optional[FileRecord]:
        ...

    async def list(self) -> List[FileRecord]:
        ...
