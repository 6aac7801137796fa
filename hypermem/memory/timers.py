"""Recurring timers for the decay scheduler.

The scheduler only talks to the ``Timer`` protocol, so production code can
run on the asyncio loop while tests fire ticks by hand.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional, Protocol

from loguru import logger

TickCallback = Callable[[], Awaitable[Any]]


class Timer(Protocol):
    """Schedules a callback to run every ``interval_seconds``."""

    def schedule(self, interval_seconds: float, callback: TickCallback) -> Any:
        ...

    def cancel(self, handle: Any) -> None:
        ...


class RecurringHandle:
    """Handle returned by ``AsyncioTimer.schedule``."""

    def __init__(self):
        self.task: Optional[asyncio.Task] = None
        self.stopped = False
        self.in_callback = False


class AsyncioTimer:
    """
    Runs the callback on the running event loop after every interval.

    The first run happens one interval after scheduling. Errors raised by
    the callback are logged and do not stop later runs. Cancelling stops
    future runs only; a callback that is already running finishes.
    """

    def schedule(self, interval_seconds: float, callback: TickCallback) -> RecurringHandle:
        handle = RecurringHandle()
        handle.task = asyncio.create_task(self._loop(handle, interval_seconds, callback))
        return handle

    def cancel(self, handle: Optional[RecurringHandle]) -> None:
        if handle is None or handle.stopped:
            return
        handle.stopped = True
        # A running callback is left alone; the loop exits once it returns
        if not handle.in_callback and handle.task is not None and not handle.task.done():
            handle.task.cancel()

    async def _loop(self, handle: RecurringHandle, interval_seconds: float, callback: TickCallback) -> None:
        while not handle.stopped:
            await asyncio.sleep(interval_seconds)
            if handle.stopped:
                break
            handle.in_callback = True
            try:
                await callback()
            except Exception as e:
                logger.error(f"Scheduled callback failed: {e}")
            finally:
                handle.in_callback = False

class ManualTimer:
    """
    Timer that never fires on its own; call ``fire()`` to run the callbacks.

    Handy for driving a scheduler deterministically.
    """

    def __init__(self):
        self.scheduled: dict[int, tuple[float, TickCallback]] = {}
        self.cancelled: list[int] = []
        self._next_handle = 1

    def schedule(self, interval_seconds: float, callback: TickCallback) -> int:
        handle = self._next_handle
        self._next_handle += 1
        self.scheduled[handle] = (interval_seconds, callback)
        return handle

    def cancel(self, handle: Optional[int]) -> None:
        if handle in self.scheduled:
            del self.scheduled[handle]
            self.cancelled.append(handle)

    @property
    def active(self) -> int:
        return len(self.scheduled)

    async def fire(self) -> None:
        for _, callback in list(self.scheduled.values()):
            await callback()
