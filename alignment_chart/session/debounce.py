"""
Trailing-edge debounce for persisting session snapshots.

Every schedule(snapshot) replaces the pending snapshot and restarts the
quiet-period timer; only the latest snapshot is ever written. Safe to call
on every drag-move. On teardown cancel() drops the pending snapshot; there
is no forced final flush, so up to one debounce interval of changes can be
lost.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Generic, Optional, Set, TypeVar

from alignment_chart.config import settings
from alignment_chart.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


class DebouncedWriter(Generic[T]):
    def __init__(
        self,
        write: Callable[[T], Awaitable[None]],
        delay: Optional[float] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self._write = write
        self.delay = settings.PERSIST_DEBOUNCE_SECONDS if delay is None else delay
        self._sleep = sleep
        self._snapshot: Optional[T] = None
        self._has_pending = False
        self._timer: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()
        self._write_lock = asyncio.Lock()
        self.write_count = 0

    @property
    def pending(self) -> bool:
        return self._has_pending

    def schedule(self, snapshot: T) -> None:
        """Replace the pending snapshot and restart the timer. Needs a running loop."""
        self._snapshot = snapshot
        self._has_pending = True
        self._cancel_timer()
        self._timer = asyncio.get_running_loop().create_task(self._wait_then_flush())
        self._tasks.add(self._timer)
        self._timer.add_done_callback(self._tasks.discard)

    async def _wait_then_flush(self) -> None:
        await self._sleep(self.delay)
        self._timer = None
        try:
            await self.flush()
        except Exception:
            logger.error("debounced_write_failed", exc_info=True)

    async def flush(self) -> None:
        """Write the pending snapshot now. Write errors propagate to the caller."""
        self._cancel_timer()
        if not self._has_pending:
            return
        async with self._write_lock:
            if not self._has_pending:
                return
            snapshot = self._snapshot
            self._snapshot = None
            self._has_pending = False
            await self._write(snapshot)
            self.write_count += 1

    def cancel(self) -> None:
        """Drop the pending snapshot and timer."""
        self._cancel_timer()
        self._snapshot = None
        self._has_pending = False

    @asynccontextmanager
    async def exclusive(self) -> AsyncIterator[None]:
        """Hold off debounced writes while the caller touches the store directly."""
        async with self._write_lock:
            yield

    async def join(self) -> None:
        """Wait for the pending timer and any write it already started."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _cancel_timer(self) -> None:
        timer = self._timer
        self._timer = None
        if timer is not None and timer is not asyncio.current_task() and not timer.done():
            timer.cancel()
