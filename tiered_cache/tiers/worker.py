"""
Serialized execution context for a single cache tier.
"""

import asyncio
import functools
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from shared.errors import TierUnavailableError
from shared.logging import get_logger


@dataclass
class TierRequest:
    """A queued call against a tier."""
    func: Callable[..., Any]
    args: tuple
    future: asyncio.Future = field(repr=False)


class TierWorker:
    """Owns one tier and runs requests against it strictly one at a time.

    Callers ``await submit(...)`` and are suspended until their request has
    run. With ``blocking=True`` each call runs in the loop's default
    executor so file I/O does not stall the event loop; the worker still
    awaits each call before taking the next, so ordering is preserved.
    """

    def __init__(self, name: str, blocking: bool = False, max_queue: int = 0):
        self.name = name
        self.blocking = blocking
        self.logger = get_logger(f"tiered_cache.worker.{name}")
        self.queue: "asyncio.Queue[TierRequest]" = asyncio.Queue(maxsize=max_queue)
        self.processing_task: Optional[asyncio.Task] = None
        self.running = False
        self.processed = 0

    async def start(self):
        """Start the worker task."""
        if self.running:
            return
        self.running = True
        self.processing_task = asyncio.create_task(self._process_queue(), name=f"tier-{self.name}")
        self.logger.info("Tier worker started", tier=self.name)

    async def stop(self):
        """Stop the worker and fail anything still queued."""
        if not self.running:
            return
        self.running = False
        if self.processing_task:
            self.processing_task.cancel()
            try:
                await self.processing_task
            except asyncio.CancelledError:
                pass
            self.processing_task = None

        dropped = 0
        while not self.queue.empty():
            request = self.queue.get_nowait()
            if not request.future.done():
                request.future.set_exception(TierUnavailableError(self.name, "Tier worker stopped"))
            self.queue.task_done()
            dropped += 1

        self.logger.info("Tier worker stopped", tier=self.name, dropped=dropped)

    async def submit(self, func: Callable[..., Any], *args: Any) -> Any:
        """Queue ``func(*args)`` and wait for its result or exception."""
        if not self.running:
            raise TierUnavailableError(self.name)

        future = asyncio.get_running_loop().create_future()
        await self.queue.put(TierRequest(func=func, args=args, future=future))
        return await future

    async def _process_queue(self):
        """Run queued requests one at a time."""
        loop = asyncio.get_running_loop()
        while self.running:
            request = await self.queue.get()
            try:
                if request.future.cancelled():
                    continue
                try:
                    if self.blocking:
                        result = await loop.run_in_executor(None, functools.partial(request.func, *request.args))
                    else:
                        result = request.func(*request.args)
                except asyncio.CancelledError:
                    if not request.future.done():
                        request.future.set_exception(TierUnavailableError(self.name, "Tier worker stopped"))
                    raise
                except Exception as e:
                    if not request.future.done():
                        request.future.set_exception(e)
                else:
                    if not request.future.done():
                        request.future.set_result(result)
                self.processed += 1
            finally:
                self.queue.task_done()
