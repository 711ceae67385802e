"""
Per-file upload processing.
Drives one file's chunk stream through an ingest strategy and builds its UploadResult.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import AsyncIterable

from shared_schemas.file_service import UploadResult
from file_ingest.core.errors import DigestFault, IngestError, SourceError
from file_ingest.ingest.digest import DigestAccumulator
from file_ingest.ingest.strategies import IngestStrategy

logger = logging.getLogger(__name__)


class UploadState(str, Enum):
    """Lifecycle of one file's ingestion."""
    INIT = "init"
    STREAMING = "streaming"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    FAILED = "failed"


class UploadProcessor:
    """
    Ingests a single file from an async chunk stream.

    State machine: INIT -> STREAMING -> FINALIZING -> COMPLETED, with FAILED
    reachable from any state. All per-file state (digest, size counter and
    strategy session) lives in one process_file() call and is never shared.

    Guarantees:
    - size_bytes is the sum of all chunk lengths
    - digest covers exactly the bytes handed to the sink, in order
    - on failure or cancellation the session is aborted (buffers dropped,
      sink handle released) and no UploadResult is produced
    """

    def __init__(self, strategy: IngestStrategy):
        self.strategy = strategy

    async def process_file(self, file_name: str, chunks: AsyncIterable[bytes]) -> UploadResult:
        """
        Stream one file into the sink.

        Args:
            file_name: Name the sink stores the file under
            chunks: Async iterable yielding the file's bytes in order

        Returns:
            UploadResult with name, base64 SHA256 and size

        Raises:
            SourceError: If the chunk stream fails
            SinkError: If the sink (or relay draining into it) fails
            asyncio.CancelledError: If the upload is cancelled
        """
        start_time = time.time()
        state = UploadState.INIT
        digest = DigestAccumulator()
        size_bytes = 0
        session = self.strategy.open_session(file_name, digest)
        logger.info(f"[UPLOAD] Starting: {file_name} ({self.strategy.name})")

        try:
            state = self._transition(file_name, state, UploadState.STREAMING)
            async for chunk in chunks:
                if not chunk:
                    continue
                await session.feed(chunk)
                size_bytes += len(chunk)

            state = self._transition(file_name, state, UploadState.FINALIZING)
            await session.finish()

        except asyncio.CancelledError:
            self._transition(file_name, state, UploadState.FAILED)
            logger.warning(f"[UPLOAD] Cancelled: {file_name}")
            await session.abort()
            raise
        except IngestError as e:
            self._transition(file_name, state, UploadState.FAILED)
            logger.error(f"[UPLOAD] Failed: {file_name} :: {e}")
            await session.abort()
            raise
        except DigestFault:
            self._transition(file_name, state, UploadState.FAILED)
            await session.abort()
            raise
        except Exception as e:
            # Anything not raised by the sink side came from the chunk stream
            self._transition(file_name, state, UploadState.FAILED)
            logger.error(f"[UPLOAD] Source failed: {file_name} :: {e}")
            await session.abort()
            raise SourceError(file_name, e) from e

        result = UploadResult(
            file_name=file_name,
            digest=digest.finalize(),
            size_bytes=size_bytes
        )
        self._transition(file_name, state, UploadState.COMPLETED)

        duration = time.time() - start_time
        logger.info(
            f"[UPLOAD] Completed: {file_name} "
            f"({size_bytes} bytes in {duration:.2f}s, SHA256: {result.digest})"
        )
        return result

    @staticmethod
    def _transition(file_name: str, current: UploadState, target: UploadState) -> UploadState:
        logger.debug(f"[UPLOAD] {file_name}: {current.value} -> {target.value}")
        return target
