"""Pytest configuration and fixtures."""

from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from annotations_server.hub import AnnotationHub
from annotations_server.main import app
from annotations_server.mcp.tools import AnnotationTools
from annotations_server.models import Annotation, AnnotationStatus

BASE_TIME = datetime(2026, 1, 1, tzinfo=UTC)


@pytest.fixture
def data_path(tmp_path: Path) -> Path:
    """Location of the canonical annotation file for one test."""
    return tmp_path / "store" / "annotations.json"


@pytest.fixture
async def hub(data_path: Path) -> AsyncGenerator[AnnotationHub, None]:
    """An opened hub over a fresh data file."""
    hub = AnnotationHub(data_path)
    await hub.open()
    yield hub
    await hub.close()


@pytest.fixture
def make_annotation() -> Callable[..., Annotation]:
    """Factory for annotation records with predictable timestamps."""
    counter = {"n": 0}

    def _make(
        annotation_id: str | None = None,
        origin: str = "http://localhost:3000/",
        comment: str = "Make the button bigger",
        status: AnnotationStatus | str = AnnotationStatus.PENDING,
        **extra,
    ) -> Annotation:
        counter["n"] += 1
        n = counter["n"]
        stamp = (BASE_TIME + timedelta(seconds=n)).isoformat()
        return Annotation(
            id=annotation_id or f"ann-{n}",
            origin=origin,
            comment=comment,
            status=status,
            created_at=extra.pop("created_at", stamp),
            updated_at=extra.pop("updated_at", stamp),
            **extra,
        )

    return _make


@pytest.fixture
def seed(hub: AnnotationHub):
    """Persist records directly, bypassing the write queue."""

    async def _seed(records: list[Annotation]) -> list[Annotation]:
        await hub.store.persist(records)
        return records

    return _seed


@pytest.fixture
async def client(hub: AnnotationHub) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client bound to the test hub."""
    app.state.hub = hub
    app.state.tools = AnnotationTools(hub)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
    del app.state.hub
    del app.state.tools
