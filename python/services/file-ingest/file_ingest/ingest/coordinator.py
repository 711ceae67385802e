"""
Multi-file upload coordination.
Runs the processor for every file part of a request and persists the results.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterable, AsyncIterator, Iterable, Optional

from shared_schemas.file_service import FileRecord
from file_ingest.core.errors import IngestError
from file_ingest.ingest.processor import UploadProcessor
from file_ingest.repository.base import FileRepository

logger = logging.getLogger(__name__)


@dataclass
class FilePart:
    """One file of a multi-file request."""
    file_name: str
    chunks: AsyncIterable[bytes]


class UploadCoordinator:
    """
    Per-file isolated processing of a request's file parts.

    Each part runs in its own task; a failing part is logged and skipped
    while its siblings carry on. Nothing is retried.
    """

    def __init__(
        self,
        processor: UploadProcessor,
        repository: FileRepository,
        max_concurrent_files: int = 4
    ):
        if max_concurrent_files <= 0:
            raise ValueError(f"max_concurrent_files must be positive, got {max_concurrent_files}")
        self.processor = processor
        self.repository = repository
        self.max_concurrent_files = max_concurrent_files

    async def process_request(self, parts: Iterable[FilePart]) -> AsyncIterator[FileRecord]:
        """
        Ingest and persist every part.

        Args:
            parts: File parts of the request

        Yields:
            FileRecord for each stored file, in completion order.
            A part repeating an earlier part's file name is skipped, so the
            stored file always matches the one record returned for it.
        """
        parts = list(parts)
        logger.info(f"[COORDINATOR] Starting file upload processing: {len(parts)} file(s)")

        accepted = []
        seen_names = set()
        for part in parts:
            if part.file_name in seen_names:
                logger.error(f"[COORDINATOR] Duplicate file name in request, skipped: {part.file_name}")
                continue
            seen_names.add(part.file_name)
            accepted.append(part)

        semaphore = asyncio.Semaphore(self.max_concurrent_files)
        tasks = [
            asyncio.ensure_future(self._process_part(part, semaphore))
            for part in accepted
        ]
        stored = 0
        try:
            for next_done in asyncio.as_completed(tasks):
                record = await next_done
                if record is not None:
                    stored += 1
                    yield record
        finally:
            # Consumer went away early (client disconnect): stop the rest
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        logger.info(f"[COORDINATOR] Finished: {stored}/{len(parts)} file(s) stored")

    async def _process_part(self, part: FilePart, semaphore: asyncio.Semaphore) -> Optional[FileRecord]:
        async with semaphore:
            try:
                result = await self.processor.process_file(part.file_name, part.chunks)
            except IngestError as e:
                logger.error(f"[COORDINATOR] Error processing file: {part.file_name} :: {e.cause}")
                return None

            try:
                return await self.repository.save(result)
            except Exception as e:
                logger.error(f"[COORDINATOR] Error saving file record: {part.file_name} :: {e}")
                return None
