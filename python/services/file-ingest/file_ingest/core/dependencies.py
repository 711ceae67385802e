"""
Shared dependencies for FastAPI endpoints.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Annotated

from fastapi import Depends

from file_ingest.core.config import IngestStrategyType, SinkBackend, settings
from file_ingest.ingest.coordinator import UploadCoordinator
from file_ingest.ingest.processor import UploadProcessor
from file_ingest.ingest.strategies import BatchingStrategy, IngestStrategy, RelayStrategy
from file_ingest.repository.base import FileRepository
from file_ingest.repository.memory import InMemoryFileRepository
from file_ingest.storage.base import SinkWriter
from file_ingest.storage.local import LocalFileSink
from file_ingest.storage.s3 import S3Sink, build_s3_client

logger = logging.getLogger(__name__)


# Singletons, created on first use
_executor: ThreadPoolExecutor | None = None
_sink: SinkWriter | None = None
_repository: FileRepository | None = None
_processor: UploadProcessor | None = None


def get_executor() -> ThreadPoolExecutor:
    """
    Get or create the pool for blocking sink I/O.
    Shared by batching uploads; relay sessions drain on threads of their own.
    """
    global _executor
    if _executor is None:
        _executor = ThreadPoolExecutor(
            max_workers=settings.BLOCKING_WORKERS,
            thread_name_prefix="sink-io"
        )
    return _executor


def get_sink() -> SinkWriter:
    """Get or create the configured sink."""
    global _sink
    if _sink is None:
        if settings.SINK_BACKEND == SinkBackend.S3:
            s3_sink = S3Sink(
                client=build_s3_client(settings),
                bucket=settings.UPLOAD_BUCKET,
                part_size=settings.S3_PART_SIZE_BYTES
            )
            s3_sink.ensure_bucket_exists()
            _sink = s3_sink
        else:
            _sink = LocalFileSink(Path(settings.UPLOAD_DIR))
        logger.info(f"Sink initialized: {settings.SINK_BACKEND.value}")
    return _sink


def get_repository() -> FileRepository:
    """Get or create the file metadata repository."""
    global _repository
    if _repository is None:
        _repository = InMemoryFileRepository()
    return _repository


def build_strategy(sink: SinkWriter, executor: ThreadPoolExecutor) -> IngestStrategy:
    """Create the ingest strategy selected by INGEST_STRATEGY."""
    if settings.INGEST_STRATEGY == IngestStrategyType.RELAY:
        return RelayStrategy(
            sink,
            capacity=settings.RELAY_CAPACITY_CHUNKS,
            receive_timeout=settings.RELAY_RECEIVE_TIMEOUT_SECONDS
        )
    return BatchingStrategy(sink, executor, threshold=settings.FLUSH_THRESHOLD_BYTES)


def get_processor() -> UploadProcessor:
    """Get or create the upload processor."""
    global _processor
    if _processor is None:
        _processor = UploadProcessor(build_strategy(get_sink(), get_executor()))
    return _processor


def get_coordinator(
    processor: Annotated[UploadProcessor, Depends(get_processor)],
    repository: Annotated[FileRepository, Depends(get_repository)],
) -> UploadCoordinator:
    """Coordinator for one request."""
    return UploadCoordinator(
        processor,
        repository,
        max_concurrent_files=settings.MAX_CONCURRENT_FILES
    )


def shutdown_executor():
    """Wait for in-flight sink I/O and drop the pool."""
    global _executor, _processor
    if _executor is not None:
        _executor.shutdown(wait=True)
        _executor = None
        _processor = None


# Dependency annotations
Processor = Annotated[UploadProcessor, Depends(get_processor)]
Coordinator = Annotated[UploadCoordinator, Depends(get_coordinator)]
Repository = Annotated[FileRepository, Depends(get_repository)]
