"""WriteQueue - linearizes read-modify-write operations against a RecordStore.

Every mutation of the collection goes through one queue drained by a single
worker task. Each operation loads the collection, applies a pure mutation
function, and persists the result before the next operation starts, so no
read can interleave with another operation's write.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any, TypeVar

from annotations_server.db.record_store import RecordStore
from annotations_server.models import Annotation

logger = logging.getLogger(__name__)

T = TypeVar("T")

# mutate(records) -> (result, new_records). new_records=None means "nothing to write".
Mutation = Callable[[list[Annotation]], tuple[T, list[Annotation] | None]]


class WriteQueue:
    """Actor-style mailbox that owns every write to a RecordStore.

    Operations run in strict submission order. A failing operation fails only
    its own submitter; the worker moves on to the next one. Once dequeued, an
    operation runs to completion even if its submitter stops waiting.
    """

    def __init__(self, store: RecordStore, maxsize: int = 0):
        """Initialize the queue.

        Args:
            store: The store this queue writes to.
            maxsize: Pending-operation limit (0 = unbounded). Submitters wait
                when the queue is full.
        """
        self._store = store
        self._maxsize = maxsize
        self._queue: asyncio.Queue[tuple[Mutation[Any], asyncio.Future[Any]]] | None = None
        self._worker: asyncio.Task | None = None
        self._closed = False

    @property
    def store(self) -> RecordStore:
        return self._store

    @property
    def pending(self) -> int:
        """Number of operations waiting to run."""
        return self._queue.qsize() if self._queue else 0

    async def submit(self, mutate: Mutation[T]) -> T:
        """Enqueue a mutation and wait for its result.

        Args:
            mutate: Pure function receiving the current collection and
                returning ``(result, new_collection_or_None)``.

        Returns:
            The mutation's result, after its collection has been persisted.

        Raises:
            Whatever the mutation or the persist raised, for this caller only.
        """
        queue = self._ensure_worker()
        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        await queue.put((mutate, future))
        return await asyncio.shield(future)

    async def close(self) -> None:
        """Drain pending operations and stop the worker."""
        self._closed = True
        if self._queue is not None and self._worker is not None and not self._worker.done():
            await self._queue.join()
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
        logger.info("Stopped annotation write queue")

    def _ensure_worker(self) -> asyncio.Queue:
        if self._closed:
            raise RuntimeError("WriteQueue is closed")
        if self._queue is None:
            self._queue = asyncio.Queue(maxsize=self._maxsize)
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run(), name="annotation-write-queue")
        return self._queue

    async def _run(self) -> None:
        assert self._queue is not None
        while True:
            mutate, future = await self._queue.get()
            try:
                result = await self._apply(mutate)
            except Exception as e:
                logger.warning(f"Queued write failed: {type(e).__name__}: {e}")
                if not future.done():
                    future.set_exception(e)
            else:
                if not future.done():
                    future.set_result(result)
            finally:
                self._queue.task_done()

    async def _apply(self, mutate: Mutation[T]) -> T:
        records = await self._store.load_for_update()
        result, new_records = mutate(records)
        if new_records is not None:
            await self._store.persist(new_records)
        return result
