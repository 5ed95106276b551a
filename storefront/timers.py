from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable


class Debouncer:
    """Trailing-edge debounce: only the last call within ``delay`` runs.

    Scheduling again cancels the pending call. ``cancel()`` must be called on
    teardown so no timer outlives its owner.
    """

    def __init__(self, delay: float) -> None:
        self.delay = float(delay)
        self._task: asyncio.Task | None = None
        self._last: asyncio.Task | None = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def schedule(self, fn: Callable[[], Awaitable[None]]) -> asyncio.Task:
        self.cancel()
        task = asyncio.get_running_loop().create_task(self._run(fn))
        self._task = task
        self._last = task
        return task

    async def _run(self, fn: Callable[[], Awaitable[None]]) -> None:
        await asyncio.sleep(self.delay)
        # Fired: from here on a cancel() belongs to the next window.
        if self._task is asyncio.current_task():
            self._task = None
        await fn()

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def wait(self) -> None:
        """Wait until the most recently scheduled call has run or been cancelled."""
        while self._last is not None:
            task = self._last
            try:
                await task
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise
            if task is self._last:
                return
