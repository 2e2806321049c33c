"""Authoritative annotation sources for reconciliation.

A source is where an edge cache reads the canonical collection from, and where
it pushes its full local state to.
"""

from abc import ABC, abstractmethod

import httpx
from pydantic import TypeAdapter

from annotations_server.models import Annotation, ReplaceAllResult
from annotations_server.services.annotation_service import AnnotationService

_collection_adapter = TypeAdapter(list[Annotation])

EXPORT_PATH = "/api/annotations/export"
SYNC_PATH = "/api/annotations/sync"


class AnnotationSource(ABC):
    """The durable side of reconciliation."""

    @abstractmethod
    async def fetch_all(self) -> list[Annotation]:
        """Fetch the full canonical collection."""
        ...

    @abstractmethod
    async def replace_all(self, annotations: list[Annotation]) -> ReplaceAllResult:
        """Replace the canonical collection with a full local state."""
        ...

    async def close(self) -> None:
        """Release any resources held by the source."""


class StoreAnnotationSource(AnnotationSource):
    """Reads and writes an in-process store through its service."""

    def __init__(self, service: AnnotationService) -> None:
        self._service = service

    async def fetch_all(self) -> list[Annotation]:
        return await self._service.export()

    async def replace_all(self, annotations: list[Annotation]) -> ReplaceAllResult:
        return await self._service.replace_all(annotations)


class HttpAnnotationSource(AnnotationSource):
    """Talks to a running annotations server over HTTP."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the source.

        Args:
            base_url: Server root, e.g. "http://127.0.0.1:3846".
            timeout: Per-request timeout in seconds.
            client: Pre-built client (tests inject one bound to an ASGI app).
        """
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout),
        )

    async def fetch_all(self) -> list[Annotation]:
        """Fetch the canonical collection.

        Raises:
            httpx.HTTPError: On transport errors, timeouts, and non-2xx replies.
            ValueError: If the reply body is not a valid collection.
        """
        response = await self._client.get(EXPORT_PATH)
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict) or not isinstance(payload.get("annotations"), list):
            raise ValueError(
                f"Unexpected export reply from {response.request.url}: "
                "expected an object with an 'annotations' list"
            )
        return _collection_adapter.validate_python(payload["annotations"])

    async def replace_all(self, annotations: list[Annotation]) -> ReplaceAllResult:
        response = await self._client.post(
            SYNC_PATH,
            json={"annotations": [a.model_dump(mode="json") for a in annotations]},
        )
        response.raise_for_status()
        return ReplaceAllResult.model_validate(response.json())

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
