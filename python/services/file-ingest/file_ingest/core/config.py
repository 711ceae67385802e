"""
Configuration management for File Ingest Service.
Loads environment variables and defines the ingest strategy and sink backend.
"""

from enum import Enum
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class IngestStrategyType(str, Enum):
    """How chunks are coordinated between the upload stream and the sink."""
    BATCHING = "batching"
    RELAY = "relay"


class SinkBackend(str, Enum):
    """Where uploaded bytes are persisted."""
    LOCAL = "local"
    S3 = "s3"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    LOG_LEVEL: str = "INFO"

    # Ingest pipeline
    INGEST_STRATEGY: IngestStrategyType = IngestStrategyType.BATCHING
    FLUSH_THRESHOLD_BYTES: int = Field(default=8192, gt=0)      # Batching: flush when this many bytes are held
    RELAY_CAPACITY_CHUNKS: int = Field(default=16, gt=0)        # Relay: chunks buffered before the producer waits
    RELAY_RECEIVE_TIMEOUT_SECONDS: Optional[float] = Field(default=300.0, gt=0)

    # Concurrency
    BLOCKING_WORKERS: int = Field(default=8, gt=0)              # Threads for batched sink writes (relay drains get their own)
    MAX_CONCURRENT_FILES: int = Field(default=4, gt=0)          # Files of one request processed in parallel

    # Multipart parts are read from the spooled upload in pieces of this size
    READ_CHUNK_SIZE: int = Field(default=64 * 1024, gt=0)

    # Sink
    SINK_BACKEND: SinkBackend = SinkBackend.LOCAL
    UPLOAD_DIR: str = "uploaded-files"

    # MinIO / S3 sink (only read when SINK_BACKEND=s3)
    MINIO_ENDPOINT: Optional[str] = None
    MINIO_ACCESS_KEY: Optional[str] = None
    MINIO_SECRET_KEY: Optional[str] = None
    MINIO_SECURE: bool = False
    UPLOAD_BUCKET: str = "uploads"
    S3_PART_SIZE_BYTES: int = Field(default=10 * 1024 * 1024, ge=5 * 1024 * 1024)  # S3 minimum part is 5MB

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
