"""In-process bounded task queue using asyncio.

`concurrency` worker loops pull from one FIFO queue, so at most that many
tasks run at once and waiting tasks are admitted in submission order.
No external dependencies (Redis, Celery) needed.
"""

import asyncio
import logging
from typing import Dict, List, Optional, Tuple

from app.jobs.dispatcher import Task, TaskQueue

logger = logging.getLogger(__name__)


class InProcessQueue(TaskQueue):
    """Local async task queue with a concurrency ceiling."""

    def __init__(self, concurrency: int = 2):
        if concurrency < 1:
            raise ValueError("concurrency must be a positive integer")
        self.concurrency = concurrency
        self._queue: "asyncio.Queue[Tuple[Task, asyncio.Future]]" = asyncio.Queue()
        self._handles: Dict[str, asyncio.Future] = {}
        self._workers: List[asyncio.Task] = []
        self._running = False
        self._active = 0

    @property
    def active(self) -> int:
        """Number of tasks currently executing."""
        return self._active

    @property
    def pending(self) -> int:
        """Number of tasks waiting for a free slot."""
        return self._queue.qsize()

    async def submit(self, task: Task, key: Optional[str] = None) -> asyncio.Future:
        future = asyncio.get_running_loop().create_future()
        if key is not None:
            self._handles[key] = future
            future.add_done_callback(lambda f: self._forget(key, f))
        await self._queue.put((task, future))
        return future

    def get_handle(self, key: str) -> Optional[asyncio.Future]:
        return self._handles.get(key)

    async def start(self) -> None:
        self._running = True
        self._workers = [
            asyncio.create_task(self._worker_loop(i)) for i in range(self.concurrency)
        ]

    async def stop(self) -> None:
        self._running = False
        for worker in self._workers:
            worker.cancel()
        for worker in self._workers:
            try:
                await worker
            except asyncio.CancelledError:
                pass
        self._workers = []

    def _forget(self, key: str, future: asyncio.Future) -> None:
        if self._handles.get(key) is future:
            del self._handles[key]

    async def _worker_loop(self, slot: int) -> None:
        """Run tasks one at a time from the shared queue."""
        while self._running:
            try:
                task, future = await asyncio.wait_for(self._queue.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue
            except asyncio.CancelledError:
                break

            if future.cancelled():
                self._queue.task_done()
                continue

            self._active += 1
            try:
                result = await task()
            except asyncio.CancelledError:
                future.cancel()
                raise
            except Exception as exc:
                # Failure belongs to this task only; the loop keeps serving
                logger.debug("Task failed in slot %d: %s", slot, exc)
                if not future.done():
                    future.set_exception(exc)
            else:
                if not future.done():
                    future.set_result(result)
            finally:
                self._active -= 1
                self._queue.task_done()
