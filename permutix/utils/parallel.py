"""Thread pool for producer/consumer work with first-error propagation.

A single producer feeds a bounded queue; a fixed number of consumers pull
items from it until the producer is exhausted. Every thread is run as a
joblib task on the threading backend, so ``Parallel`` is the join barrier.
Exceptions never escape a task: the first one is stored in an error slot,
the remaining threads stop at their next queue operation, and the stored
exception is re-raised once every thread has returned.
"""

import logging
import queue
import threading
from typing import Any, Callable, Iterable, Optional

from joblib import Parallel, cpu_count, delayed

logger = logging.getLogger(__name__)

# Marks the end of the work stream, one per consumer
_SENTINEL = object()

# Seconds between checks of the stop flag while blocked on the queue
_POLL_INTERVAL = 0.05


def default_n_workers() -> int:
    """Number of worker threads used when none is requested."""
    return max(1, cpu_count())


class WorkerPool:
    """Run ``consumer(item)`` over every item of a source, in parallel.

    Args:
        n_workers: Number of consumer threads. ``None`` or values below 1
            use the available hardware concurrency.
        queue_size: Bound of the work queue. Defaults to twice the number
            of workers.

    Example:
        >>> pool = WorkerPool(n_workers=4)
        >>> pool.run(iter(range(100)), process_item)
    """

    def __init__(self, n_workers: Optional[int] = None, queue_size: Optional[int] = None):
        if n_workers is None or n_workers < 1:
            n_workers = default_n_workers()
        self.n_workers = int(n_workers)
        self.queue_size = queue_size if queue_size else 2 * self.n_workers

        self._queue: Optional[queue.Queue] = None
        self._stop = threading.Event()
        self._error_lock = threading.Lock()
        self._error: Optional[BaseException] = None

    @property
    def failed(self) -> bool:
        """Whether any thread has recorded a failure."""
        return self._error is not None

    def _record_error(self, error: BaseException) -> None:
        """Store ``error`` unless an earlier one was already stored."""
        with self._error_lock:
            if self._error is None:
                self._error = error
                logger.error(f"Worker failure, shutting down pool: {error!r}")
        self._stop.set()

    def _put(self, item: Any) -> bool:
        """Block until ``item`` is queued; False if the pool is stopping."""
        while not self._stop.is_set():
            try:
                self._queue.put(item, timeout=_POLL_INTERVAL)
                return True
            except queue.Full:
                continue
        return False

    def _get(self) -> Any:
        """Block until an item is available; sentinel if the pool is stopping."""
        while not self._stop.is_set():
            try:
                return self._queue.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                continue
        return _SENTINEL

    def _produce(self, source: Iterable) -> None:
        try:
            for item in source:
                if not self._put(item):
                    return
        except Exception as e:
            self._record_error(e)
            return

        for _ in range(self.n_workers):
            if not self._put(_SENTINEL):
                return

    def _consume(self, consumer: Callable[[Any], None]) -> None:
        while True:
            item = self._get()
            if item is _SENTINEL:
                return
            try:
                consumer(item)
            except Exception as e:
                self._record_error(e)
                return

    def run(self, source: Iterable, consumer: Callable[[Any], None]) -> None:
        """Feed every item of ``source`` to ``consumer`` and wait for completion.

        Args:
            source: Iterable of work items. Consumed by a single producer
                thread, so it does not need to be thread-safe.
            consumer: Callable applied to each item from one of the worker
                threads. Must be thread-safe with respect to shared state.

        Raises:
            Exception: The first exception raised by the producer or any
                consumer, re-raised after all threads have been joined.
        """
        self._queue = queue.Queue(maxsize=self.queue_size)
        self._stop.clear()
        self._error = None

        logger.debug(f"Starting pool with {self.n_workers} worker(s)")

        tasks = [delayed(self._produce)(source)]
        tasks += [delayed(self._consume)(consumer) for _ in range(self.n_workers)]

        # One thread per task: batching would serialise producer and consumers
        Parallel(
            n_jobs=len(tasks),
            backend="threading",
            batch_size=1,
            pre_dispatch="all",
        )(tasks)

        self._queue = None

        if self._error is not None:
            raise self._error

        logger.debug("All workers joined")
