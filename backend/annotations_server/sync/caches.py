"""Edge caches: local copies of the collection kept in step by reconciliation."""

from abc import ABC, abstractmethod
from pathlib import Path

from annotations_server.db.record_store import RecordStore
from annotations_server.models import Annotation


class EdgeCache(ABC):
    """A local copy of the collection that reconciliation may overwrite."""

    @abstractmethod
    async def read(self) -> list[Annotation]:
        """Current local contents."""
        ...

    @abstractmethod
    async def overwrite(self, annotations: list[Annotation]) -> None:
        """Replace the local contents wholesale."""
        ...


class MemoryEdgeCache(EdgeCache):
    """In-memory cache. Stores and returns copies."""

    def __init__(self, annotations: list[Annotation] | None = None) -> None:
        self._annotations = [a.model_copy(deep=True) for a in annotations or []]
        self.overwrite_count = 0

    async def read(self) -> list[Annotation]:
        return [a.model_copy(deep=True) for a in self._annotations]

    async def overwrite(self, annotations: list[Annotation]) -> None:
        self._annotations = [a.model_copy(deep=True) for a in annotations]
        self.overwrite_count += 1


class FileEdgeCache(EdgeCache):
    """Cache persisted to a local JSON file with the same atomic writes as the server."""

    def __init__(self, path: Path | str) -> None:
        self.store = RecordStore(path)

    async def read(self) -> list[Annotation]:
        return await self.store.load()

    async def overwrite(self, annotations: list[Annotation]) -> None:
        await self.store.persist(annotations)
