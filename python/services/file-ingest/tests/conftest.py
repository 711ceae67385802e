"""Shared test fixtures."""

from collections.abc import Generator
from concurrent.futures import ThreadPoolExecutor

import pytest

from fakes import RecordingSink


@pytest.fixture
def executor() -> Generator[ThreadPoolExecutor, None, None]:
    """Dedicated pool for blocking sink calls."""
    pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix="test-sink-io")
    try:
        yield pool
    finally:
        pool.shutdown(wait=True)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
