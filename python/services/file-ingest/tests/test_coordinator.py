"""Tests for multi-file coordination and per-file isolation."""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import List

import pytest

from shared_schemas.file_service import FileRecord
from file_ingest.ingest.coordinator import FilePart, UploadCoordinator
from file_ingest.ingest.processor import UploadProcessor
from file_ingest.ingest.strategies import BatchingStrategy, RelayStrategy
from file_ingest.repository.memory import InMemoryFileRepository

from fakes import (
    FailingRepository,
    RecordingSink,
    SourceFailure,
    b64_sha256,
    chunks_of,
    failing_after,
)


def _collect(coordinator: UploadCoordinator, parts: List[FilePart]) -> List[FileRecord]:
    async def scenario() -> List[FileRecord]:
        return [record async for record in coordinator.process_request(parts)]

    return asyncio.run(scenario())


@pytest.fixture(params=["batching", "relay"])
def processor(request, executor: ThreadPoolExecutor, sink: RecordingSink) -> UploadProcessor:
    if request.param == "batching":
        return UploadProcessor(BatchingStrategy(sink, executor, threshold=4))
    return UploadProcessor(RelayStrategy(sink, capacity=2, receive_timeout=10))


def test_stores_every_file_of_the_request(processor: UploadProcessor) -> None:
    repository = InMemoryFileRepository()
    coordinator = UploadCoordinator(processor, repository)
    parts = [
        FilePart("a.txt", chunks_of([b"alpha"])),
        FilePart("b.txt", chunks_of([b"be", b"ta"])),
        FilePart("empty.txt", chunks_of([])),
    ]

    records = _collect(coordinator, parts)

    by_name = {r.file_name: r for r in records}
    assert set(by_name) == {"a.txt", "b.txt", "empty.txt"}
    assert by_name["b.txt"].size_bytes == 4
    assert by_name["b.txt"].digest == b64_sha256(b"beta")
    assert by_name["empty.txt"].size_bytes == 0
    assert sorted(r.id for r in records) == [1, 2, 3]
    assert len(asyncio.run(repository.list())) == 3


def test_failed_file_is_skipped_and_siblings_continue(
    processor: UploadProcessor, sink: RecordingSink
) -> None:
    repository = InMemoryFileRepository()
    coordinator = UploadCoordinator(processor, repository)
    parts = [
        FilePart("good-1.txt", chunks_of([b"one", b"two"])),
        FilePart("bad.txt", failing_after([b"partial"], SourceFailure("connection reset"))),
        FilePart("good-2.txt", chunks_of([b"three"])),
    ]

    records = _collect(coordinator, parts)

    assert {r.file_name for r in records} == {"good-1.txt", "good-2.txt"}
    assert sink.content_of("good-1.txt") == b"onetwo"
    assert sink.content_of("good-2.txt") == b"three"
    assert {r.file_name for r in asyncio.run(repository.list())} == {"good-1.txt", "good-2.txt"}


def test_failed_persistence_is_isolated(processor: UploadProcessor) -> None:
    repository = FailingRepository(reject="unlucky.txt")
    coordinator = UploadCoordinator(processor, repository)
    parts = [
        FilePart("unlucky.txt", chunks_of([b"data"])),
        FilePart("lucky.txt", chunks_of([b"data"])),
    ]

    records = _collect(coordinator, parts)

    assert [r.file_name for r in records] == ["lucky.txt"]


def test_sink_failure_of_one_file_does_not_affect_others() -> None:
    class PickySink(RecordingSink):
        def write(self, handle, data: bytes) -> None:
            if handle.file_name == "poison.bin":
                raise IOError("bad sector")
            super().write(handle, data)

    sink = PickySink()
    coordinator = UploadCoordinator(
        UploadProcessor(RelayStrategy(sink, capacity=1, receive_timeout=10)),
        InMemoryFileRepository()
    )
    parts = [
        FilePart("poison.bin", chunks_of([b"x"] * 20)),
        FilePart("fine.bin", chunks_of([b"y"] * 20)),
    ]

    records = _collect(coordinator, parts)

    assert [r.file_name for r in records] == ["fine.bin"]
    assert sink.content_of("fine.bin") == b"y" * 20
    assert sink.handle_for("poison.bin").aborted


def test_concurrency_limit_is_respected(executor: ThreadPoolExecutor) -> None:
    active = 0
    peak = 0

    async def tracked(data: bytes):
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        try:
            await asyncio.sleep(0.02)
            yield data
        finally:
            active -= 1

    coordinator = UploadCoordinator(
        UploadProcessor(BatchingStrategy(RecordingSink(), executor)),
        InMemoryFileRepository(),
        max_concurrent_files=2
    )
    parts = [FilePart(f"f{i}.txt", tracked(b"payload")) for i in range(6)]

    records = _collect(coordinator, parts)

    assert len(records) == 6
    assert peak <= 2


def test_rejects_non_positive_concurrency(processor: UploadProcessor) -> None:
    with pytest.raises(ValueError):
        UploadCoordinator(processor, InMemoryFileRepository(), max_concurrent_files=0)


def test_repeated_file_name_keeps_only_the_first_part(
    processor: UploadProcessor, sink: RecordingSink
) -> None:
    coordinator = UploadCoordinator(processor, InMemoryFileRepository())
    parts = [
        FilePart("dup.txt", chunks_of([b"first"])),
        FilePart("dup.txt", chunks_of([b"second"])),
        FilePart("other.txt", chunks_of([b"other"])),
    ]

    records = _collect(coordinator, parts)

    by_name = {r.file_name: r for r in records}
    assert len(records) == 2
    assert set(by_name) == {"dup.txt", "other.txt"}
    assert sink.content_of("dup.txt") == b"first"
    assert by_name["dup.txt"].digest == b64_sha256(b"first")


def test_closing_the_record_stream_early_aborts_unfinished_files(
    processor: UploadProcessor, sink: RecordingSink
) -> None:
    repository = InMemoryFileRepository()
    coordinator = UploadCoordinator(processor, repository)

    async def stalled():
        yield b"first"
        await asyncio.sleep(3600)
        yield b"never"

    async def scenario() -> FileRecord:
        records = coordinator.process_request([
            FilePart("stuck-1.bin", stalled()),
            FilePart("quick.txt", chunks_of([b"done"])),
            FilePart("stuck-2.bin", stalled()),
        ])
        first = await records.__anext__()
        for _ in range(500):
            if len(sink.handles) == 3 and all(h.writes for h in sink.handles):
                break
            await asyncio.sleep(0.01)
        await records.aclose()
        return first

    first = asyncio.run(scenario())

    assert first.file_name == "quick.txt"
    for name in ("stuck-1.bin", "stuck-2.bin"):
        handle = sink.handle_for(name)
        assert handle.writes == [b"first"]
        assert handle.aborted
        assert not handle.closed
    assert [r.file_name for r in asyncio.run(repository.list())] == ["quick.txt"]
