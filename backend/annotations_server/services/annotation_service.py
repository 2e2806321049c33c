"""Single-record mutations and the replace-all push.

Every write here is one WriteQueue operation; reads go straight to a store
snapshot.
"""

from __future__ import annotations

import logging
from typing import Any

from annotations_server.db.record_store import canonical_json
from annotations_server.db.write_queue import WriteQueue
from annotations_server.errors import NotFoundError, ValidationError
from annotations_server.models import (
    Annotation,
    AnnotationCreate,
    AnnotationStatus,
    AnnotationUpdate,
    DeleteResult,
    ReplaceAllResult,
    StatusChange,
)
from annotations_server.models.annotation import generate_id, now_iso
from annotations_server.services.bulk_mutator import is_valid_id, validate_status

logger = logging.getLogger(__name__)


def require_id(annotation_id: Any) -> str:
    """Validate a single annotation id."""
    if not is_valid_id(annotation_id):
        raise ValidationError(f"Invalid annotation id: {annotation_id!r}")
    return annotation_id


def _find(records: list[Annotation], annotation_id: str) -> int:
    for index, record in enumerate(records):
        if record.id == annotation_id:
            return index
    raise NotFoundError(
        f"Annotation with id {annotation_id} not found", annotation_id=annotation_id
    )


class AnnotationService:
    """Create, read, update, delete, and replace-all for annotations."""

    def __init__(self, queue: WriteQueue) -> None:
        self._queue = queue

    async def get(self, annotation_id: str) -> Annotation:
        """Get an annotation by ID.

        Raises:
            NotFoundError: If no annotation has this id.
        """
        require_id(annotation_id)
        records = await self._queue.store.load()
        return records[_find(records, annotation_id)]

    async def export(self) -> list[Annotation]:
        """The full collection in stored order."""
        return await self._queue.store.load()

    async def create(self, data: AnnotationCreate) -> Annotation:
        """Create an annotation, or merge into an existing one with the same id."""

        def mutate(records: list[Annotation]) -> tuple[Annotation, list[Annotation]]:
            if data.id is not None:
                for record in records:
                    if record.id == data.id:
                        changes = data.model_dump(exclude_unset=True, exclude={"id"})
                        for field, value in changes.items():
                            setattr(record, field, value)
                        record.touch()
                        return record, records

            now = now_iso()
            annotation = Annotation(
                id=data.id or generate_id(),
                origin=data.origin,
                locator=data.locator,
                comment=data.comment,
                status=AnnotationStatus.PENDING,
                created_at=now,
                updated_at=now,
                attachment=data.attachment,
                provenance=data.provenance,
            )
            records.append(annotation)
            return annotation, records

        annotation = await self._queue.submit(mutate)
        logger.info(f"Saved annotation {annotation.id} for {annotation.origin}")
        return annotation

    async def update(self, annotation_id: str, data: AnnotationUpdate) -> Annotation:
        """Apply the fields set on ``data`` to an annotation.

        Raises:
            ValidationError: If the id is malformed.
            NotFoundError: If no annotation has this id.
        """
        require_id(annotation_id)
        changes = data.model_dump(exclude_unset=True)
        for required in ("status", "comment"):
            if required in changes and changes[required] is None:
                raise ValidationError(f"{required} cannot be null")

        def mutate(records: list[Annotation]) -> tuple[Annotation, list[Annotation]]:
            record = records[_find(records, annotation_id)]
            for field, value in changes.items():
                setattr(record, field, value)
            record.touch()
            return record, records

        return await self._queue.submit(mutate)

    async def update_status(self, annotation_id: Any, status: Any) -> StatusChange:
        """Set one annotation's status.

        Raises:
            ValidationError: If the id or status is malformed.
            NotFoundError: If no annotation has this id.
        """
        require_id(annotation_id)
        target = validate_status(status)

        def mutate(records: list[Annotation]) -> tuple[StatusChange, list[Annotation]]:
            record = records[_find(records, annotation_id)]
            old_status = record.status
            record.status = target
            record.touch()
            return StatusChange(
                annotation=record, old_status=old_status, new_status=target
            ), records

        change = await self._queue.submit(mutate)
        logger.info(
            f"Annotation {annotation_id} status {change.old_status.value} -> {target.value}"
        )
        return change

    async def delete(self, annotation_id: Any) -> DeleteResult:
        """Permanently remove an annotation.

        Raises:
            ValidationError: If the id is malformed.
            NotFoundError: If no annotation has this id.
        """
        require_id(annotation_id)

        def mutate(records: list[Annotation]) -> tuple[DeleteResult, list[Annotation]]:
            removed = records.pop(_find(records, annotation_id))
            return DeleteResult(
                id=annotation_id,
                message=f"Annotation {annotation_id} has been successfully deleted",
                deleted_annotation=removed,
            ), records

        result = await self._queue.submit(mutate)
        logger.info(f"Deleted annotation {annotation_id}")
        return result

    async def get_attachment(self, annotation_id: Any) -> dict[str, Any] | None:
        """The opaque attachment of an annotation, or None if it has none.

        Raises:
            NotFoundError: If no annotation has this id.
        """
        annotation = await self.get(require_id(annotation_id))
        return annotation.attachment

    async def replace_all(self, annotations: list[Annotation]) -> ReplaceAllResult:
        """Replace the whole collection with a client's full local state.

        The write is skipped when the new collection is canonically identical
        to the stored one.

        Raises:
            ValidationError: If two records share an id.
        """
        seen: set[str] = set()
        for annotation in annotations:
            if annotation.id in seen:
                raise ValidationError(f"Duplicate annotation id: {annotation.id}")
            seen.add(annotation.id)

        new_records = [a.model_copy(deep=True) for a in annotations]
        new_json = canonical_json(new_records)

        def mutate(
            records: list[Annotation],
        ) -> tuple[ReplaceAllResult, list[Annotation] | None]:
            if canonical_json(records) == new_json:
                return ReplaceAllResult(count=len(records), skipped=True), None
            logger.info(
                f"Sync request: replacing {len(records)} annotations "
                f"with {len(new_records)} annotations"
            )
            return ReplaceAllResult(count=len(new_records)), new_records

        result = await self._queue.submit(mutate)
        if result.skipped:
            logger.info("Sync skipped: data is identical")
        return result
