"""
File Ingest Service API schemas.
Type-safe contracts for ingest results and stored file metadata.
"""

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Ingest Results
# ============================================================================

class UploadResult(BaseModel):
    """Outcome of ingesting one file: name, base64 SHA256 and size."""
    model_config = ConfigDict(frozen=True)

    file_name: str
    digest: str = Field(description="Base64 SHA256 of the stored bytes")
    size_bytes: int = Field(ge=0)


class FileRecord(BaseModel):
    """Persisted file metadata."""
    model_config = ConfigDict(frozen=True)

    id: int
    file_name: str
    digest: str
    size_bytes: int

    @classmethod
    def from_result(cls, record_id: int, result: UploadResult) -> "FileRecord":
        return cls(id=record_id, **result.model_dump())


# ============================================================================
# Health Check
# ============================================================================

class HealthCheckResponse(BaseModel):
    """Health check response."""
    status: str
    sink: str
    strategy: str
