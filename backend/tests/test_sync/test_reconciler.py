"""Tests for edge-cache reconciliation."""

import asyncio

import httpx
import pytest

from annotations_server.sync import cli
from annotations_server.sync.caches import FileEdgeCache, MemoryEdgeCache
from annotations_server.sync.reconciler import Reconciler, id_sets_diverge
from annotations_server.sync.sources import (
    AnnotationSource,
    HttpAnnotationSource,
    StoreAnnotationSource,
)


class SlowSource(AnnotationSource):
    """Source that never answers in time."""

    async def fetch_all(self):
        await asyncio.sleep(10)
        return []

    async def replace_all(self, annotations):
        raise NotImplementedError


@pytest.fixture
def source(hub):
    return StoreAnnotationSource(hub.annotations)


class TestIdSetsDiverge:
    def test_same_ids_in_any_order(self, make_annotation):
        a, b = make_annotation("a"), make_annotation("b")
        assert not id_sets_diverge([a, b], [b, a])

    def test_count_differs(self, make_annotation):
        a = make_annotation("a")
        assert id_sets_diverge([a], [a, make_annotation("b")])

    def test_same_count_different_ids(self, make_annotation):
        assert id_sets_diverge([make_annotation("a")], [make_annotation("b")])


class TestReconcileOnce:
    """Tests for a single reconciliation cycle."""

    @pytest.mark.asyncio
    async def test_divergent_cache_converges(self, hub, seed, source, make_annotation):
        a, b, c = make_annotation("a"), make_annotation("b"), make_annotation("c")
        await seed([a, b])
        cache = MemoryEdgeCache([a, c])
        notifications = []
        reconciler = Reconciler(source, cache)
        reconciler.add_listener(notifications.append)

        result = await reconciler.reconcile_once()

        assert result.changed is True
        assert result.added == ["b"]
        assert result.removed == ["c"]
        assert [r.id for r in await cache.read()] == ["a", "b"]
        assert notifications == [result]

    @pytest.mark.asyncio
    async def test_matching_cycle_is_a_no_op(self, hub, seed, source, make_annotation):
        records = await seed([make_annotation("a"), make_annotation("b")])
        cache = MemoryEdgeCache(list(reversed(records)))
        notifications = []
        reconciler = Reconciler(source, cache)
        reconciler.add_listener(notifications.append)

        result = await reconciler.reconcile_once()

        assert result.changed is False
        assert result.skipped is False
        assert cache.overwrite_count == 0
        assert notifications == []

    @pytest.mark.asyncio
    async def test_content_only_changes_are_not_detected(
        self, hub, seed, source, make_annotation
    ):
        stored = make_annotation("a", comment="Server text")
        await seed([stored])
        cache = MemoryEdgeCache([stored.model_copy(update={"comment": "Local text"})])

        result = await Reconciler(source, cache).reconcile_once()

        assert result.changed is False
        assert (await cache.read())[0].comment == "Local text"

    @pytest.mark.asyncio
    async def test_server_deletion_reaches_cache(self, hub, seed, source, make_annotation):
        records = await seed([make_annotation("a"), make_annotation("b")])
        cache = MemoryEdgeCache(records)
        await hub.annotations.delete("a")

        await Reconciler(source, cache).reconcile_once()

        assert [r.id for r in await cache.read()] == ["b"]

    @pytest.mark.asyncio
    async def test_timeout_skips_cycle(self, make_annotation):
        cache = MemoryEdgeCache([make_annotation("a")])

        result = await Reconciler(SlowSource(), cache, timeout=0.05).reconcile_once()

        assert result.skipped is True
        assert result.error == "timeout"
        assert cache.overwrite_count == 0

    @pytest.mark.asyncio
    async def test_server_error_skips_cycle(self, make_annotation):
        transport = httpx.MockTransport(lambda request: httpx.Response(500))
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            source = HttpAnnotationSource("http://test", client=client)
            cache = MemoryEdgeCache([make_annotation("a")])

            result = await Reconciler(source, cache).reconcile_once()

        assert result.skipped is True
        assert cache.overwrite_count == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            {"error": "maintenance"},
            [],
            {"annotations": None},
            {"annotations": [{"id": "a"}]},
        ],
    )
    async def test_malformed_export_keeps_cache(self, make_annotation, body):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=body))
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            source = HttpAnnotationSource("http://test", client=client)
            cache = MemoryEdgeCache([make_annotation("a"), make_annotation("b")])
            notifications = []
            reconciler = Reconciler(source, cache)
            reconciler.add_listener(notifications.append)

            result = await reconciler.reconcile_once()

        assert result.skipped is True
        assert result.changed is False
        assert cache.overwrite_count == 0
        assert [r.id for r in await cache.read()] == ["a", "b"]
        assert notifications == []

    @pytest.mark.asyncio
    async def test_non_json_export_keeps_cache(self, make_annotation):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>"))
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            source = HttpAnnotationSource("http://test", client=client)
            cache = MemoryEdgeCache([make_annotation("a")])

            result = await Reconciler(source, cache).reconcile_once()

        assert result.skipped is True
        assert cache.overwrite_count == 0

    @pytest.mark.asyncio
    async def test_listener_failures_are_contained(self, hub, seed, source, make_annotation):
        await seed([make_annotation("a")])
        calls = []

        def broken(result):
            raise RuntimeError("badge renderer crashed")

        async def badge(result):
            calls.append(result.remote_count)

        reconciler = Reconciler(source, MemoryEdgeCache())
        reconciler.add_listener(broken)
        reconciler.add_listener(badge)

        result = await reconciler.reconcile_once()

        assert result.changed is True
        assert calls == [1]


class TestPush:
    @pytest.mark.asyncio
    async def test_push_replaces_source(self, hub, seed, source, make_annotation):
        await seed([make_annotation("server-only")])
        cache = MemoryEdgeCache([make_annotation("local-1"), make_annotation("local-2")])
        reconciler = Reconciler(source, cache)

        first = await reconciler.push()
        second = await reconciler.push()

        assert first.skipped is False
        assert second.skipped is True
        assert sorted(r.id for r in await hub.store.load()) == ["local-1", "local-2"]


class TestBackgroundLoop:
    @pytest.mark.asyncio
    async def test_start_and_stop(self, hub, seed, source, make_annotation):
        await seed([make_annotation("a")])
        cache = MemoryEdgeCache()
        converged = asyncio.Event()
        reconciler = Reconciler(source, cache, interval=0.01)
        reconciler.add_listener(lambda result: converged.set())

        reconciler.start()
        await asyncio.wait_for(converged.wait(), timeout=2)
        await reconciler.stop()

        assert [r.id for r in await cache.read()] == ["a"]
        assert cache.overwrite_count == 1


class TestHttpSource:
    """Reconciliation against the running HTTP API."""

    @pytest.mark.asyncio
    async def test_fetch_and_push_over_http(self, hub, seed, client, make_annotation):
        await seed([make_annotation("a"), make_annotation("b")])
        source = HttpAnnotationSource("http://test", client=client)
        cache = FileEdgeCache(hub.store.path.parent / "cache.json")
        reconciler = Reconciler(source, cache)

        result = await reconciler.reconcile_once()
        assert result.changed is True
        assert [r.id for r in await cache.read()] == ["a", "b"]

        await cache.overwrite([make_annotation("c")])
        pushed = await reconciler.push()
        assert pushed.count == 1
        assert [r.id for r in await hub.store.load()] == ["c"]

    @pytest.mark.asyncio
    async def test_cli_single_cycle(self, hub, seed, client, make_annotation, tmp_path, monkeypatch):
        await seed([make_annotation("a")])
        monkeypatch.setattr(
            cli,
            "HttpAnnotationSource",
            lambda server, timeout: HttpAnnotationSource(server, timeout=timeout, client=client),
        )
        cache_path = tmp_path / "cache.json"
        args = cli.parse_args(["--server", "http://test", "--cache", str(cache_path), "--once"])

        assert await cli.run(args) == 0
        assert [r.id for r in await FileEdgeCache(cache_path).read()] == ["a"]

    def test_cli_defaults(self, monkeypatch):
        monkeypatch.delenv("ANNOTATIONS_SERVER_URL", raising=False)
        monkeypatch.delenv("RECONCILE_INTERVAL_SECONDS", raising=False)
        monkeypatch.delenv("RECONCILE_TIMEOUT_SECONDS", raising=False)

        args = cli.parse_args(["--cache", "cache.json"])

        assert args.server == "http://127.0.0.1:3846"
        assert args.interval == 10.0
        assert args.timeout == 5.0
        assert args.once is False
