"""
Filesystem sink: one file per upload under a root directory.
"""

import logging
import os
import threading
from pathlib import Path
from typing import BinaryIO, Set

logger = logging.getLogger(__name__)


def safe_file_name(name: str) -> str:
    """Strip directories and NUL bytes so a client name cannot escape the root."""
    cleaned = os.path.basename(name.replace("\\", "/")).strip().replace("\x00", "")
    if cleaned in ("", ".", ".."):
        return "unnamed.bin"
    return cleaned


class LocalFileSink:
    """
    Writes uploads to `root/<file name>`, replacing existing files.

    A path is written by one upload at a time: opening a path that another
    upload still holds fails instead of interleaving the two writers.
    """

    def __init__(self, root: Path):
        self.root = Path(root)
        self._open_paths: Set[str] = set()
        self._lock = threading.Lock()

    def path_for(self, file_name: str) -> Path:
        return self.root / safe_file_name(file_name)

    def open(self, file_name: str) -> BinaryIO:
        self.root.mkdir(parents=True, exist_ok=True)
        path = self.path_for(file_name)
        with self._lock:
            if str(path) in self._open_paths:
                raise FileExistsError(f"{path} is already being written by another upload")
            self._open_paths.add(str(path))
        logger.debug(f"[LOCAL SINK] Opening {path}")
        try:
            return path.open("wb")
        except OSError:
            self._release_path(str(path))
            raise

    def write(self, handle: BinaryIO, data: bytes) -> None:
        handle.write(data)

    def close(self, handle: BinaryIO) -> None:
        try:
            handle.flush()
            os.fsync(handle.fileno())
        finally:
            handle.close()
            self._release_path(handle.name)
        logger.info(f"[LOCAL SINK] Stored {handle.name}")

    def abort(self, handle: BinaryIO) -> None:
        # Bytes already written stay on disk; there is no rollback across batches
        try:
            handle.close()
        finally:
            self._release_path(handle.name)
        logger.warning(f"[LOCAL SINK] Aborted {handle.name}, partial content left in place")

    def _release_path(self, path: str) -> None:
        with self._lock:
            self._open_paths.discard(path)
