"""Cancellable fixed-interval task bound to a session's lifetime."""

import asyncio
import inspect
import logging
from typing import Callable, Optional, Any

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Runs a callback every `interval` seconds on the running event loop.

    The callback may be a plain function or a coroutine function. A failing
    tick is logged and the task keeps running. Use as an async context
    manager to guarantee the task is stopped on every exit path.
    """

    def __init__(self, name: str, interval: float, callback: Callable[[], Any]):
        self.name = name
        self.interval = interval
        self.callback = callback
        self._task: Optional[asyncio.Task] = None
        self._stopping = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stopping = False
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)
        logger.debug(f"Periodic task '{self.name}' started ({self.interval * 1000:.0f} ms)")

    async def _run(self) -> None:
        while not self._stopping:
            await asyncio.sleep(self.interval)
            if self._stopping:
                break
            try:
                result = self.callback()
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Periodic task '{self.name}' tick failed: {e}")

    async def stop(self) -> None:
        """Stop the task. Safe to call repeatedly and from inside the callback."""
        task = self._task
        self._task = None
        self._stopping = True
        if task is None or task.done():
            return
        if task is asyncio.current_task():
            # Called from our own tick; the loop exits after the callback returns
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug(f"Periodic task '{self.name}' stopped")

    async def __aenter__(self) -> "PeriodicTask":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
