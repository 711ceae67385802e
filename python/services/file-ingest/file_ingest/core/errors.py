"""
Exceptions raised by the ingest pipeline.
"""


class IngestError(Exception):
    """A single file could not be ingested."""

    def __init__(self, file_name: str, cause: BaseException):
        super().__init__(f"{file_name}: {cause}")
        self.file_name = file_name
        self.cause = cause


class SourceError(IngestError):
    """The chunk stream of the upload failed."""


class SinkError(IngestError):
    """Opening, writing or closing the sink failed (including relay draining)."""


class DigestFault(RuntimeError):
    """Digest used after it was finalized. Programming error, never recovered."""
