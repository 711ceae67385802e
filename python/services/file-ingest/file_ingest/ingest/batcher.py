"""
Threshold batching of upload chunks.
"""

from typing import List, Optional

DEFAULT_FLUSH_THRESHOLD = 8192


class ChunkBatcher:
    """
    Holds chunks until at least `threshold` bytes are accumulated, then
    releases them as one batch.

    A batch may exceed the threshold: a large chunk arriving after small
    ones is emitted together with them, never split.
    """

    def __init__(self, threshold: int = DEFAULT_FLUSH_THRESHOLD):
        if threshold <= 0:
            raise ValueError(f"Flush threshold must be positive, got {threshold}")
        self.threshold = threshold
        self._chunks: List[bytes] = []
        self._accumulated = 0

    @property
    def pending_bytes(self) -> int:
        return self._accumulated

    def offer(self, chunk: bytes) -> Optional[bytes]:
        """
        Add a chunk.

        Args:
            chunk: Next chunk in arrival order

        Returns:
            The consolidated batch once the threshold is reached, else None
        """
        self._chunks.append(chunk)
        self._accumulated += len(chunk)
        if self._accumulated >= self.threshold:
            return self._emit()
        return None

    def flush(self) -> Optional[bytes]:
        """Release held chunks as a final partial batch (None if nothing is held)."""
        if not self._chunks:
            return None
        return self._emit()

    def reset(self) -> None:
        """Drop held chunks without emitting them."""
        self._chunks = []
        self._accumulated = 0

    def _emit(self) -> bytes:
        batch = self._chunks[0] if len(self._chunks) == 1 else b"".join(self._chunks)
        self.reset()
        return batch
