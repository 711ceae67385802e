"""Test doubles for sinks, repositories and chunk sources."""

import base64
import hashlib
import threading
import time
from typing import AsyncIterator, Dict, Iterable, List, Optional

from shared_schemas.file_service import FileRecord, UploadResult


class SinkFailure(IOError):
    """Raised by RecordingSink when told to fail."""


class RecordingHandle:
    def __init__(self, file_name: str):
        self.file_name = file_name
        self.writes: List[bytes] = []
        self.closed = False
        self.aborted = False


class RecordingSink:
    """In-memory sink recording every call, optionally failing or slow."""

    def __init__(
        self,
        fail_on_write: Optional[int] = None,
        fail_on_open: bool = False,
        fail_on_close: bool = False,
        write_delay: float = 0.0,
        open_delay: float = 0.0,
    ):
        self.fail_on_write = fail_on_write
        self.fail_on_open = fail_on_open
        self.fail_on_close = fail_on_close
        self.write_delay = write_delay
        self.open_delay = open_delay
        self.handles: List[RecordingHandle] = []
        self.threads: set = set()
        self._lock = threading.Lock()

    def open(self, file_name: str) -> RecordingHandle:
        self.threads.add(threading.current_thread().name)
        if self.open_delay:
            time.sleep(self.open_delay)
        if self.fail_on_open:
            raise SinkFailure("open failed")
        handle = RecordingHandle(file_name)
        with self._lock:
            self.handles.append(handle)
        return handle

    def write(self, handle: RecordingHandle, data: bytes) -> None:
        self.threads.add(threading.current_thread().name)
        if self.write_delay:
            time.sleep(self.write_delay)
        if self.fail_on_write is not None and len(handle.writes) + 1 == self.fail_on_write:
            raise SinkFailure(f"write {self.fail_on_write} failed")
        handle.writes.append(bytes(data))

    def close(self, handle: RecordingHandle) -> None:
        if self.fail_on_close:
            raise SinkFailure("close failed")
        handle.closed = True

    def abort(self, handle: RecordingHandle) -> None:
        handle.aborted = True

    def handle_for(self, file_name: str) -> RecordingHandle:
        matches = [h for h in self.handles if h.file_name == file_name]
        assert len(matches) == 1, f"expected one handle for {file_name}, got {len(matches)}"
        return matches[0]

    def content_of(self, file_name: str) -> bytes:
        return b"".join(self.handle_for(file_name).writes)


class FailingRepository:
    """Repository that refuses to store one file name."""

    def __init__(self, reject: str):
        self.reject = reject
        self.saved: Dict[int, FileRecord] = {}

    async def save(self, result: UploadResult) -> FileRecord:
        if result.file_name == self.reject:
            raise RuntimeError("database unavailable")
        record = FileRecord.from_result(len(self.saved) + 1, result)
        self.saved[record.id] = record
        return record

    async def get(self, record_id: int) -> Optional[FileRecord]:
        return self.saved.get(record_id)

    async def list(self) -> List[FileRecord]:
        return list(self.saved.values())


class SourceFailure(Exception):
    """Raised by failing chunk sources."""


async def chunks_of(parts: Iterable[bytes]) -> AsyncIterator[bytes]:
    for part in parts:
        yield part


async def failing_after(parts: Iterable[bytes], error: Exception) -> AsyncIterator[bytes]:
    for part in parts:
        yield part
    raise error


def b64_sha256(data: bytes) -> str:
    return base64.b64encode(hashlib.sha256(data).digest()).decode("ascii")


def split_every(data: bytes, size: int) -> List[bytes]:
    return [data[i:i + size] for i in range(0, len(data), size)]
