"""
Response envelopes shared by the file-ingest HTTP endpoints.
"""

from typing import Generic, TypeVar
from pydantic import BaseModel


T = TypeVar('T')


class SuccessResponse(BaseModel, Generic[T]):
    """
    Generic success response wrapper.

    Example:
        SuccessResponse[FileRecord](
            success=True,
            message="File stored",
            data=FileRecord(...)
        )
    """
    success: bool = True
    message: str | None = None
    data: T


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    detail: str
    error_code: str | None = None
    file_name: str | None = None
