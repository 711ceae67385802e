"""
In-memory metadata repository.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from shared_schemas.file_service import FileRecord, UploadResult

logger = logging.getLogger(__name__)


class InMemoryFileRepository:
    """Keeps file records in a dict, assigning ids from 1."""

    def __init__(self):
        self._records: Dict[int, FileRecord] = {}
        self._next_id = 1
        self._lock = asyncio.Lock()

    async def save(self, result: UploadResult) -> FileRecord:
        async with self._lock:
            record = FileRecord.from_result(self._next_id, result)
            self._records[record.id] = record
            self._next_id += 1
        logger.info(f"FileRecord saved: {record.file_name} (id={record.id})")
        return record

    async def get(self, record_id: int) -> Optional[FileRecord]:
        return self._records.get(record_id)

    async def list(self) -> List[FileRecord]:
        return list(self._records.values())
