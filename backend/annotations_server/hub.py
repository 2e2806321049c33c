"""AnnotationHub - the components serving one annotation data file."""

import logging
from pathlib import Path

from annotations_server.db import RecordStore, WriteQueue
from annotations_server.services import AnnotationService, BulkMutator, QueryEngine

logger = logging.getLogger(__name__)


class AnnotationHub:
    """Bundles the store, its write queue, and the services that use them.

    All services share one RecordStore and one WriteQueue, so every write for
    this data path is serialized through the same queue.
    """

    def __init__(self, data_path: Path | str, queue_maxsize: int = 0):
        """Initialize the hub.

        Args:
            data_path: Location of the canonical JSON file.
            queue_maxsize: Pending-write limit for back-pressure (0 = unbounded).
        """
        self.store = RecordStore(data_path)
        self.queue = WriteQueue(self.store, maxsize=queue_maxsize)
        self.query = QueryEngine(self.store)
        self.bulk = BulkMutator(self.queue)
        self.annotations = AnnotationService(self.queue)

    async def open(self) -> None:
        """Make sure the data file exists and is readable.

        Goes through the write queue, which owns every repair of the file.
        """
        count = await self.queue.submit(lambda records: (len(records), None))
        logger.info(f"Annotation file {self.store.path} has {count} annotation(s)")

    async def close(self) -> None:
        """Finish pending writes."""
        await self.queue.close()
