"""
Bounded relay between an async chunk producer and a blocking consumer.
Async-to-sync bridging for sink writes running in a worker thread.
"""

import asyncio
import concurrent.futures
import logging
from typing import Optional

logger = logging.getLogger(__name__)

_END = None                  # End-of-stream marker
_ABORT = object()            # Producer gave up, reader must stop


class RelayError(Exception):
    """Base class for relay failures."""


class RelayClosedError(RelayError):
    """Producer used a relay that is closed or whose reader has failed."""


class RelayAbortedError(RelayError):
    """Reader woke up because the producer aborted the relay."""


class RelayTimeoutError(RelayError):
    """Reader waited longer than the receive timeout for the next chunk."""


class BoundedRelay:
    """
    Bridge an async producer with a sync reader through a bounded queue.

    CRITICAL: Must be created in async context (captures the running event loop).
    All queue operations run on the loop thread; the reader reaches the queue
    through run_coroutine_threadsafe.

    Features:
    - Backpressure: send() suspends while `capacity` chunks are buffered
    - Ordered, no duplication: a single FIFO queue between the two ends
    - Failure in either end is observable by the other:
      reader failure -> fail() -> next send()/close() raises RelayClosedError
      producer failure -> abort() -> blocked receive() raises RelayAbortedError
    """

    def __init__(self, capacity: int, receive_timeout: Optional[float] = None):
        """
        Initialize relay.

        MUST be called from async context (not from the reader thread).

        Args:
            capacity: Maximum number of buffered chunks
            receive_timeout: Seconds the reader waits for a chunk (None = forever)
        """
        if capacity <= 0:
            raise ValueError(f"Relay capacity must be positive, got {capacity}")

        self.capacity = capacity
        self._receive_timeout = receive_timeout
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=capacity)

        # Producer side state (loop thread only)
        self._closed = False
        self._reader_error: Optional[BaseException] = None

        # Reader side state (reader thread only)
        self._end_seen = False

        self._loop = asyncio.get_running_loop()

    # ------------------------------------------------------------------
    # Producer end (event loop)
    # ------------------------------------------------------------------

    async def send(self, data: bytes) -> None:
        """
        Push one chunk, waiting while the relay is full.

        Raises:
            RelayClosedError: If the writer end is closed or the reader failed
        """
        if self._closed:
            raise RelayClosedError("Relay is closed for writing")
        self._raise_if_reader_failed()
        await self._queue.put(data)
        self._raise_if_reader_failed()

    async def close(self) -> None:
        """
        Signal end-of-stream to the reader. Safe to call twice.

        Raises:
            RelayClosedError: If the reader failed
        """
        if self._closed:
            return
        self._closed = True
        self._raise_if_reader_failed()
        await self._queue.put(_END)
        self._raise_if_reader_failed()

    def abort(self) -> None:
        """Drop buffered chunks and wake the reader with an abort marker."""
        self._closed = True
        self._discard_buffered()
        self._queue.put_nowait(_ABORT)

    def _raise_if_reader_failed(self) -> None:
        if self._reader_error is not None:
            raise RelayClosedError("Relay reader failed") from self._reader_error

    def _discard_buffered(self) -> None:
        # Frees every slot, so a producer suspended in put() wakes up
        while not self._queue.empty():
            self._queue.get_nowait()

    def _on_reader_failed(self, error: BaseException) -> None:
        self._reader_error = error
        self._discard_buffered()

    # ------------------------------------------------------------------
    # Reader end (worker thread)
    # ------------------------------------------------------------------

    def receive(self) -> Optional[bytes]:
        """
        Blocking read of the next chunk.

        Called from the drain worker thread.

        Returns:
            Next chunk, or None once the producer closed the relay

        Raises:
            RelayAbortedError: If the producer aborted
            RelayTimeoutError: If no chunk arrived within the receive timeout
        """
        if self._end_seen:
            return None

        future = asyncio.run_coroutine_threadsafe(self._queue.get(), self._loop)
        try:
            item = future.result(timeout=self._receive_timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            raise RelayTimeoutError(
                f"No chunk received within {self._receive_timeout}s"
            )

        if item is _ABORT:
            raise RelayAbortedError("Producer aborted the relay")
        if item is _END:
            self._end_seen = True
        return item

    def fail(self, error: BaseException) -> None:
        """
        Report a reader-side failure to the producer.

        Called from the drain worker thread.
        """
        logger.error(f"[RELAY] Reader failed: {error}")
        self._loop.call_soon_threadsafe(self._on_reader_failed, error)
