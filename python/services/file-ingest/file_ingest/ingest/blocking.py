"""
Run blocking sink calls on the shared worker pool.
"""

import asyncio
import concurrent.futures
from concurrent.futures import Executor
from typing import Any, Callable, Optional


class BlockingRunner:
    """
    Submits blocking calls for one upload to the executor, one at a time.

    Keeps the last submitted call so a cancelled upload can wait for the
    worker thread to let go of the sink handle before releasing it.
    """

    def __init__(self, executor: Executor):
        self._executor = executor
        self._inflight: Optional[concurrent.futures.Future] = None

    async def run(self, func: Callable[..., Any], *args: Any) -> Any:
        self._inflight = self._executor.submit(func, *args)
        return await asyncio.wrap_future(self._inflight)

    async def settle(self) -> Any:
        """
        Wait until the last submitted call has finished, whatever its outcome.

        Returns:
            The call's return value, or None if it failed or was cancelled
        """
        inflight = self._inflight
        if inflight is None:
            return None
        if not inflight.done():
            wrapped = asyncio.wrap_future(inflight)
            await asyncio.wait([wrapped])
            if not wrapped.cancelled():
                wrapped.exception()  # outcome was already reported to the caller of run()
        if inflight.cancelled() or inflight.exception() is not None:
            return None
        return inflight.result()
