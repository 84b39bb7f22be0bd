"""
Bounded worker pool for weathersync.

A fixed number of asyncio workers pull zero-argument coroutine functions
from one bounded queue. Submitting to a full queue waits for space, work
is never dropped. A task that raises is logged and its worker keeps
going.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional, Tuple
from weathersync.core.errors import PoolClosedError
from weathersync.observability import metrics
from weathersync.observability.logging_setup import get_logger

log = get_logger("weathersync.pool")

Task = Callable[[], Awaitable[None]]

class WorkerPool:
    """Fixed-size pool with backpressure on submit."""

    def __init__(self, worker_count: int, queue_capacity: int):
        """
        Args:
            worker_count: Number of workers, must be > 0
            queue_capacity: Queue size, must be >= 0. With 0 a submit
                returns only once a worker has taken the task.
        """
        if worker_count <= 0:
            raise ValueError("worker_count must be > 0")
        if queue_capacity < 0:
            raise ValueError("queue_capacity must be >= 0")

        self.worker_count = worker_count
        self.queue_capacity = queue_capacity
        # asyncio.Queue(0) is unbounded; capacity 0 is handled by a handshake
        self._queue: asyncio.Queue[Tuple[Task, Optional[asyncio.Future]]] = asyncio.Queue(
            maxsize=queue_capacity)
        self._workers: List[asyncio.Task] = []
        self._closed = False
        # submits that passed the closed check but are not enqueued yet
        self._submitting = 0
        self._no_submits = asyncio.Event()
        self._no_submits.set()

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        """Spawns the workers. Calling it again is a no-op."""
        if self._workers:
            return
        for i in range(self.worker_count):
            self._workers.append(asyncio.create_task(self._work(i), name=f"pool-worker-{i}"))
        log.info("Worker pool started", workers=self.worker_count, capacity=self.queue_capacity)

    async def submit(self, task: Task) -> None:
        """
        Enqueues a task, waiting while the queue is full.

        Raises:
            PoolClosedError: the pool is closing or closed
        """
        if self._closed:
            raise PoolClosedError("worker pool is closed")

        self._submitting += 1
        self._no_submits.clear()
        try:
            if self.queue_capacity == 0:
                taken = asyncio.get_running_loop().create_future()
                await self._queue.put((task, taken))
                await taken
            else:
                await self._queue.put((task, None))
        finally:
            self._submitting -= 1
            if self._submitting == 0:
                self._no_submits.set()
        metrics.pool_queue_depth.set(self._queue.qsize())

    async def _work(self, index: int) -> None:
        while True:
            task, taken = await self._queue.get()
            metrics.pool_queue_depth.set(self._queue.qsize())
            if taken is not None and not taken.done():
                taken.set_result(None)
            try:
                await task()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                metrics.pool_task_errors.inc()
                log.opt(exception=e).error("Task failed in worker", worker=index)
            finally:
                self._queue.task_done()

    async def close(self) -> None:
        """
        Stops accepting work, waits for submits already in progress and
        every accepted task, then stops the workers.
        """
        if self._closed and not self._workers:
            return
        self._closed = True
        if self._workers:
            await self._no_submits.wait()
            await self._queue.join()
        for w in self._workers:
            w.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()
        log.info("Worker pool closed")

    async def __aenter__(self) -> "WorkerPool":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
