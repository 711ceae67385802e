"""
Ingest strategies: how chunks travel from the upload stream to the sink.

Both strategies hand out one session per file with the same contract:
    feed(chunk)  - called for every non-empty chunk, in arrival order
    finish()     - all chunks fed; returns once the sink holds every byte
    abort()      - failure or cancellation; releases buffers and the sink handle

Batching: chunks are held until FLUSH_THRESHOLD_BYTES is reached and written
as one batch through the blocking pool.
Relay: chunks go straight into a BoundedRelay; a drain job on a thread of
its own reads it and writes to the sink concurrently with the upload.
"""

import asyncio
import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Any, Optional, Protocol

from file_ingest.core.errors import SinkError
from file_ingest.ingest.batcher import ChunkBatcher, DEFAULT_FLUSH_THRESHOLD
from file_ingest.ingest.blocking import BlockingRunner
from file_ingest.ingest.digest import DigestAccumulator
from file_ingest.ingest.relay import BoundedRelay, RelayAbortedError, RelayClosedError
from file_ingest.storage.base import SinkWriter

logger = logging.getLogger(__name__)

DEFAULT_RELAY_CAPACITY = 16


class IngestSession(Protocol):
    async def feed(self, chunk: bytes) -> None:
        ...

    async def finish(self) -> None:
        ...

    async def abort(self) -> None:
        ...


class IngestStrategy(Protocol):
    name: str

    def open_session(self, file_name: str, digest: DigestAccumulator) -> IngestSession:
        """Create the per-file state. Called from the event loop."""
        ...


# ============================================================================
# Batching
# ============================================================================

class BatchingStrategy:
    """Threshold batching, one blocking sink write per batch."""

    name = "batching"

    def __init__(
        self,
        sink: SinkWriter,
        executor: Executor,
        threshold: int = DEFAULT_FLUSH_THRESHOLD
    ):
        if threshold <= 0:
            raise ValueError(f"Flush threshold must be positive, got {threshold}")
        self.sink = sink
        self.executor = executor
        self.threshold = threshold

    def open_session(self, file_name: str, digest: DigestAccumulator) -> "BatchingSession":
        return BatchingSession(
            file_name=file_name,
            digest=digest,
            sink=self.sink,
            runner=BlockingRunner(self.executor),
            batcher=ChunkBatcher(self.threshold)
        )


class BatchingSession:
    def __init__(
        self,
        file_name: str,
        digest: DigestAccumulator,
        sink: SinkWriter,
        runner: BlockingRunner,
        batcher: ChunkBatcher
    ):
        self.file_name = file_name
        self._digest = digest
        self._sink = sink
        self._runner = runner
        self._batcher = batcher
        self._handle: Optional[Any] = None
        self._opening = False
        self.batches_written = 0

    async def feed(self, chunk: bytes) -> None:
        batch = self._batcher.offer(chunk)
        if batch is not None:
            await self._write_batch(batch)

    async def finish(self) -> None:
        batch = self._batcher.flush()
        if batch is not None:
            await self._write_batch(batch)

        # Nothing was ever written for an empty file, so nothing was opened
        if self._handle is not None:
            handle, self._handle = self._handle, None
            await self._call_sink(self._sink.close, handle)

        logger.debug(f"[BATCHING] {self.file_name}: {self.batches_written} batches written")

    async def abort(self) -> None:
        self._batcher.reset()
        opened_late = await self._runner.settle()
        if self._handle is None and self._opening:
            # Cancelled while open() was running: its result never reached _write_batch
            self._handle = opened_late
        if self._handle is None:
            return
        handle, self._handle = self._handle, None
        try:
            await self._runner.run(self._sink.abort, handle)
        except Exception as e:
            logger.warning(f"[BATCHING] Failed to release sink for {self.file_name}: {e}")

    async def _write_batch(self, batch: bytes) -> None:
        self._digest.update(batch)
        if self._handle is None:
            self._opening = True
            self._handle = await self._call_sink(self._sink.open, self.file_name)
            self._opening = False
        await self._call_sink(self._sink.write, self._handle, batch)
        self.batches_written += 1
        logger.debug(f"[BATCHING] {self.file_name}: wrote batch of {len(batch)} bytes")

    async def _call_sink(self, func, *args) -> Any:
        try:
            return await self._runner.run(func, *args)
        except Exception as e:
            raise SinkError(self.file_name, e) from e


# ============================================================================
# Relay
# ============================================================================

class RelayStrategy:
    """
    Continuous streaming through a bounded relay.

    Each session drains its relay on a dedicated thread, held for the whole
    upload. Drains never queue behind other uploads on a shared pool, so an
    idle client cannot keep another upload's drain from starting.
    """

    name = "relay"

    def __init__(
        self,
        sink: SinkWriter,
        capacity: int = DEFAULT_RELAY_CAPACITY,
        receive_timeout: Optional[float] = None,
        thread_name_prefix: str = "relay-drain"
    ):
        if capacity <= 0:
            raise ValueError(f"Relay capacity must be positive, got {capacity}")
        self.sink = sink
        self.capacity = capacity
        self.receive_timeout = receive_timeout
        self.thread_name_prefix = thread_name_prefix

    def open_session(self, file_name: str, digest: DigestAccumulator) -> "RelaySession":
        relay = BoundedRelay(self.capacity, receive_timeout=self.receive_timeout)
        return RelaySession(file_name, digest, self.sink, relay, self.thread_name_prefix)


class RelaySession:
    def __init__(
        self,
        file_name: str,
        digest: DigestAccumulator,
        sink: SinkWriter,
        relay: BoundedRelay,
        thread_name_prefix: str
    ):
        self.file_name = file_name
        self._digest = digest
        self._sink = sink
        self._relay = relay

        # Drain starts before the first chunk arrives; the worker exits once it returns
        drain_thread = ThreadPoolExecutor(max_workers=1, thread_name_prefix=thread_name_prefix)
        self._drain_job = drain_thread.submit(self._drain_into_sink)
        drain_thread.shutdown(wait=False)
        self._drain = asyncio.wrap_future(self._drain_job)

    async def feed(self, chunk: bytes) -> None:
        self._digest.update(chunk)
        try:
            await self._relay.send(chunk)
        except RelayClosedError:
            await self._raise_drain_failure()

    async def finish(self) -> None:
        try:
            await self._relay.close()
        except RelayClosedError:
            await self._raise_drain_failure()

        written = await self._drain
        logger.debug(f"[RELAY] {self.file_name}: drain finished after {written} bytes")

    async def abort(self) -> None:
        self._relay.abort()
        pending = self._drain
        if pending.cancelled():
            # Wrapper was cancelled along with the upload; wait for the worker itself
            pending = asyncio.wrap_future(self._drain_job)
        await asyncio.wait([pending])
        if not pending.cancelled():
            pending.exception()  # RelayAbortedError, or the sink failure already reported

    async def _raise_drain_failure(self) -> None:
        # The reader failed first; its SinkError is the one to report
        await self._drain
        raise SinkError(self.file_name, RuntimeError("relay closed by its reader"))

    def _drain_into_sink(self) -> int:
        """Blocking loop run on the pool: relay -> sink. Returns bytes written."""
        handle = None
        written = 0
        try:
            while True:
                data = self._relay.receive()
                if data is None:
                    break
                if handle is None:
                    handle = self._sink.open(self.file_name)
                self._sink.write(handle, data)
                written += len(data)

            if handle is not None:
                opened, handle = handle, None
                self._sink.close(opened)
        except RelayAbortedError:
            self._release(handle)
            raise
        except BaseException as e:
            self._relay.fail(e)
            self._release(handle)
            if isinstance(e, Exception):
                raise SinkError(self.file_name, e) from e
            raise

        return written

    def _release(self, handle: Optional[Any]) -> None:
        if handle is None:
            return
        try:
            self._sink.abort(handle)
        except Exception as e:
            logger.warning(f"[RELAY] Failed to release sink for {self.file_name}: {e}")
