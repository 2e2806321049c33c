"""Tests for single-record mutations and replace-all."""

import pytest

from annotations_server.errors import NotFoundError, ValidationError
from annotations_server.models import AnnotationCreate, AnnotationStatus, AnnotationUpdate


class TestCreate:
    """Tests for AnnotationService.create()."""

    @pytest.mark.asyncio
    async def test_create_assigns_id_and_timestamps(self, hub):
        annotation = await hub.annotations.create(
            AnnotationCreate(origin="http://localhost:3000/", comment="Fix padding")
        )

        assert annotation.id
        assert annotation.status == AnnotationStatus.PENDING
        assert annotation.created_at == annotation.updated_at
        assert [r.id for r in await hub.store.load()] == [annotation.id]

    @pytest.mark.asyncio
    async def test_create_keeps_client_id(self, hub):
        annotation = await hub.annotations.create(
            AnnotationCreate(id="client-1", origin="http://localhost:3000/", comment="Hi")
        )
        assert annotation.id == "client-1"

    @pytest.mark.asyncio
    async def test_create_with_existing_id_updates(self, hub, seed, make_annotation):
        existing = make_annotation("a", comment="Old", status=AnnotationStatus.COMPLETED)
        await seed([existing])

        annotation = await hub.annotations.create(
            AnnotationCreate(id="a", origin="http://localhost:3000/", comment="New")
        )

        assert annotation.comment == "New"
        assert annotation.created_at == existing.created_at
        # Status is not part of a create request and is left as stored
        assert annotation.status == AnnotationStatus.COMPLETED
        assert len(await hub.store.load()) == 1

    def test_create_request_rejects_blank_fields(self):
        with pytest.raises(ValueError):
            AnnotationCreate(origin="", comment="x")
        with pytest.raises(ValueError):
            AnnotationCreate(id="  ", origin="http://localhost:3000/", comment="x")


class TestReadAndDelete:
    """Tests for get, get_attachment, and delete."""

    @pytest.mark.asyncio
    async def test_get(self, hub, seed, make_annotation):
        await seed([make_annotation("a")])
        assert (await hub.annotations.get("a")).id == "a"

    @pytest.mark.asyncio
    async def test_get_missing(self, hub):
        with pytest.raises(NotFoundError, match="Annotation with id nope not found"):
            await hub.annotations.get("nope")

    @pytest.mark.asyncio
    async def test_get_attachment(self, hub, seed, make_annotation):
        await seed(
            [
                make_annotation("with", attachment={"kind": "screenshot"}),
                make_annotation("without"),
            ]
        )
        assert await hub.annotations.get_attachment("with") == {"kind": "screenshot"}
        assert await hub.annotations.get_attachment("without") is None

    @pytest.mark.asyncio
    async def test_delete(self, hub, seed, make_annotation):
        await seed([make_annotation("a"), make_annotation("b")])

        result = await hub.annotations.delete("a")

        assert result.deleted is True
        assert result.deleted_annotation.id == "a"
        assert [r.id for r in await hub.store.load()] == ["b"]

    @pytest.mark.asyncio
    async def test_delete_missing_leaves_store_alone(self, hub, seed, make_annotation):
        await seed([make_annotation("a")])
        before = hub.store.write_count

        with pytest.raises(NotFoundError):
            await hub.annotations.delete("b")
        assert hub.store.write_count == before

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad_id", ["", "   ", None, 7])
    async def test_malformed_id(self, hub, bad_id):
        with pytest.raises(ValidationError, match="Invalid annotation id"):
            await hub.annotations.delete(bad_id)


class TestUpdate:
    """Tests for update and update_status."""

    @pytest.mark.asyncio
    async def test_update_fields(self, hub, seed, make_annotation):
        original = make_annotation("a")
        await seed([original])

        updated = await hub.annotations.update(
            "a",
            AnnotationUpdate(comment="Edited", status=AnnotationStatus.ARCHIVED, locator="#hero"),
        )

        assert updated.comment == "Edited"
        assert updated.status == AnnotationStatus.ARCHIVED
        assert updated.locator == "#hero"
        assert updated.updated_at > original.updated_at

    @pytest.mark.asyncio
    async def test_update_leaves_unset_fields(self, hub, seed, make_annotation):
        await seed([make_annotation("a", comment="Keep", provenance={"tag": "h1"})])

        updated = await hub.annotations.update("a", AnnotationUpdate(locator="h1"))

        assert updated.comment == "Keep"
        assert updated.provenance == {"tag": "h1"}

    @pytest.mark.asyncio
    async def test_update_rejects_null_comment(self, hub, seed, make_annotation):
        await seed([make_annotation("a")])
        with pytest.raises(ValidationError, match="comment cannot be null"):
            await hub.annotations.update("a", AnnotationUpdate(comment=None))

    @pytest.mark.asyncio
    async def test_update_missing(self, hub):
        with pytest.raises(NotFoundError):
            await hub.annotations.update("nope", AnnotationUpdate(comment="x"))

    @pytest.mark.asyncio
    async def test_update_status(self, hub, seed, make_annotation):
        await seed([make_annotation("a")])

        change = await hub.annotations.update_status("a", "completed")

        assert change.old_status == AnnotationStatus.PENDING
        assert change.new_status == AnnotationStatus.COMPLETED
        assert (await hub.annotations.get("a")).status == AnnotationStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_update_status_invalid(self, hub, seed, make_annotation):
        await seed([make_annotation("a")])
        with pytest.raises(ValidationError, match="Invalid status"):
            await hub.annotations.update_status("a", "resolved")


class TestReplaceAll:
    """Tests for the replace-all push."""

    @pytest.mark.asyncio
    async def test_replaces_collection(self, hub, seed, make_annotation):
        await seed([make_annotation("old")])
        incoming = [make_annotation("new-1"), make_annotation("new-2")]

        result = await hub.annotations.replace_all(incoming)

        assert result.success is True
        assert result.skipped is False
        assert result.count == 2
        assert [r.id for r in await hub.store.load()] == ["new-1", "new-2"]

    @pytest.mark.asyncio
    async def test_identical_push_writes_once(self, hub, make_annotation):
        incoming = [make_annotation("a"), make_annotation("b")]
        before = hub.store.write_count

        first = await hub.annotations.replace_all(incoming)
        second = await hub.annotations.replace_all(incoming)

        assert first.skipped is False
        assert second.skipped is True
        assert second.count == 2
        assert hub.store.write_count == before + 1

    @pytest.mark.asyncio
    async def test_reordered_push_is_identical(self, hub, seed, make_annotation):
        a, b = make_annotation("a"), make_annotation("b")
        await seed([a, b])

        result = await hub.annotations.replace_all([b, a])
        assert result.skipped is True

    @pytest.mark.asyncio
    async def test_empty_push_clears_store(self, hub, seed, make_annotation):
        await seed([make_annotation("a")])

        result = await hub.annotations.replace_all([])

        assert result.count == 0
        assert await hub.store.load() == []

    @pytest.mark.asyncio
    async def test_duplicate_ids_rejected(self, hub, seed, make_annotation):
        await seed([make_annotation("keep")])

        with pytest.raises(ValidationError, match="Duplicate annotation id"):
            await hub.annotations.replace_all([make_annotation("x"), make_annotation("x")])
        assert [r.id for r in await hub.store.load()] == ["keep"]
