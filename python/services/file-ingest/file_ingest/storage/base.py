"""
Sink contract used by the ingest pipeline.
"""

from typing import Any, Protocol


class SinkWriter(Protocol):
    """
    Durable destination for the bytes of uploaded files.

    Every method may block and is only ever called from a worker thread.
    One handle is used by one upload at a time, in order:
    open -> write* -> close, or open -> write* -> abort on failure.
    """

    def open(self, file_name: str) -> Any:
        """Open a destination for `file_name` and return its handle."""
        ...

    def write(self, handle: Any, data: bytes) -> None:
        """Append bytes to the destination."""
        ...

    def close(self, handle: Any) -> None:
        """Commit the destination after the last write."""
        ...

    def abort(self, handle: Any) -> None:
        """Release the destination after a failed upload."""
        ...
